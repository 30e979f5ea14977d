from __future__ import annotations

import time
from typing import Optional

from ..config.config import ServiceEntry
from ..environment.processes import ProcessTable
from ..utils.errors import VerificationMismatch
from ..utils.external import External_Simple
from ..utils.hwlogging import tuninglog


class Services:
    # seconds given to the processes of a stopped unit to exit
    stop_timeout = 5.0
    poll_interval = 0.1

    def __init__(self, entries: tuple[ServiceEntry, ...], processes: Optional[ProcessTable] = None):
        self.entries = entries
        self.processes = processes or ProcessTable()

    def stop(self) -> None:
        log = tuninglog()
        for entry in self.entries:
            # systemctl fails when a pending job gets canceled, the process table tells the truth
            cmd = External_Simple(["systemctl", "stop", *entry.units], check=False)
            if cmd.returncode != 0:
                log.warning(f"systemctl stop {' '.join(entry.units)} exited with status {cmd.returncode}")
            pids = self._wait_exit(entry.process)
            if pids:
                raise VerificationMismatch(
                    f"{entry.process} is still running after stopping {', '.join(entry.units)}",
                    [f"pid {pid}" for pid in pids],
                )
            log.info(
                f"stopped {entry.process}",
                extra={"type": "service", "value": "stopped", "units": list(entry.units)},
            )

    def _wait_exit(self, process: str) -> list[int]:
        """Poll the process table until process is gone or stop_timeout expires, return the survivors."""
        deadline = time.monotonic() + self.stop_timeout
        pids = self.processes.pids_named(process)
        while pids and time.monotonic() < deadline:
            time.sleep(self.poll_interval)
            pids = self.processes.pids_named(process)
        return pids

    def start(self) -> None:
        for entry in self.entries:
            External_Simple(["systemctl", "start", *entry.units])
            tuninglog().info(
                f"started {entry.process}",
                extra={"type": "service", "value": "started", "units": list(entry.units)},
            )
