from __future__ import annotations

import pathlib
from typing import Optional

from ..utils import helpers as h
from ..utils.errors import ApplyFailure, VerificationMismatch
from ..utils.external import External
from ..utils.hwlogging import tuninglog

# where cset mounts the cpuset filesystem
CPUSET_ROOT = pathlib.Path("/cpusets")


class Cset(External):
    def __init__(self, args: list[str]):
        super().__init__()
        self.args = args

    @property
    def name(self) -> str:
        return "cset"

    def run_cmd(self) -> list[str]:
        return ["cset", *self.args]

    def tolerate_failure(self, stdout: bytes, stderr: bytes) -> bool:
        # resetting a shield that does not exist is not an error
        return "--reset" in self.args and b"not active" in stdout + stderr

    def parse_cmd(self, stdout: bytes, stderr: bytes):
        return stdout.decode("utf-8")


class Cpusets:
    """Reads cpuset membership from the cpuset filesystem."""

    def __init__(self, root: pathlib.Path = CPUSET_ROOT):
        self.root = root

    def exists(self, name: str) -> bool:
        return (self.root / name).is_dir()

    def tasks(self, name: str) -> list[int]:
        tasks = self.root / name / "tasks"
        if not tasks.exists():
            raise VerificationMismatch(f"cpuset {name} does not exist")
        try:
            return [int(pid) for pid in tasks.read_text(encoding="utf-8").split()]
        except (OSError, ValueError) as e:
            raise ApplyFailure(f"cannot read the tasks of cpuset {name}", [str(e)])


class Shield:
    """Reserves a set of cores for the benchmarks.

    The shield is made of two cpusets: "user" holds the shielded cores and
    must stay empty until a benchmark is started in it, "system" holds
    the other cores and every task that can be moved, kernel threads
    included.
    """

    def __init__(self, cpu_shield: str, cpusets: Optional[Cpusets] = None):
        self.cpu_shield = cpu_shield
        self.cpusets = cpusets or Cpusets()

    def teardown(self) -> None:
        Cset(["shield", "--reset"]).run()
        if self.cpusets.exists("user"):
            raise VerificationMismatch("the shield is still active after a reset")
        tuninglog().info("shield not active", extra={"type": "cpuset", "value": "unshielded"})

    def setup(self) -> None:
        log = tuninglog()
        self.teardown()
        Cset(["shield", f"--cpu={self.cpu_shield}"]).run()
        Cset(["shield", "--kthread=on"]).run()

        user_tasks = self.cpusets.tasks("user")
        if user_tasks:
            raise VerificationMismatch(
                f"{len(user_tasks)} task(s) remain in the shielded cpus",
                [f"pid {pid}" for pid in user_tasks],
            )
        system_tasks = self.cpusets.tasks("system")
        if not system_tasks:
            raise VerificationMismatch("no task was moved to the system cpuset")
        log.info(
            f"shielded cpus {h.cpu_list_to_range(h.parse_cpu_range(self.cpu_shield))}, "
            f"{len(system_tasks)} tasks moved to the system cpuset",
            extra={"type": "cpuset", "value": self.cpu_shield},
        )
