from __future__ import annotations

from typing import Optional

from ..config.config import Baseline
from ..utils.errors import PreconditionMismatch
from ..utils.hwlogging import tuninglog
from .cpu_cores import CPU_CORES
from .cpufreq import CpuFreq
from .numa import NUMA
from .processes import ProcessTable
from .software import Software


class Preconditions:
    """Read-only checks proving the host matches the expected baseline.

    Checks run in a fixed order and the first mismatch raises
    PreconditionMismatch: nothing is mutated before all of them passed.
    """

    def __init__(
        self,
        baseline: Baseline,
        cpufreq: Optional[CpuFreq] = None,
        processes: Optional[ProcessTable] = None,
    ):
        self.baseline = baseline
        self.cpufreq = cpufreq or CpuFreq()
        self.processes = processes or ProcessTable()

    def run(self) -> None:
        self.check_kernel_release()
        self.check_threads_per_core()
        self.check_turbo_boost()
        self.check_numa_nodes()
        self.check_frequency_driver()
        self.check_processes()

    def _expect(self, what: str, expected, actual) -> None:
        if expected != actual:
            raise PreconditionMismatch(
                f"{what} does not match the baseline",
                [f"expected: {expected}", f"actual: {actual}"],
            )
        tuninglog().info(f"{what} is {actual}", extra={"type": "precondition", "value": actual})

    def check_kernel_release(self) -> None:
        self._expect("kernel release", self.baseline.kernel_release, Software.kernel_release())

    def check_threads_per_core(self) -> None:
        cpu_cores = CPU_CORES()
        cpu_cores.run()
        self._expect("threads per core", self.baseline.threads_per_core, cpu_cores.get_threads_per_core())

    def check_turbo_boost(self) -> None:
        def state(enabled: bool) -> str:
            return "enabled" if enabled else "disabled"

        self._expect("turbo boost", state(self.baseline.turbo_boost), state(self.cpufreq.turbo_boost_enabled()))

    def check_numa_nodes(self) -> None:
        numa = NUMA()
        numa.run()
        self._expect("NUMA node count", self.baseline.numa_nodes, numa.count())

    def check_frequency_driver(self) -> None:
        self._expect("frequency scaling driver", self.baseline.frequency_driver, self.cpufreq.driver())

    def check_processes(self) -> None:
        intruders = self.processes.not_matching(self.baseline.process_whitelist)
        if intruders:
            raise PreconditionMismatch(
                f"{len(intruders)} running process(es) are not whitelisted",
                [f"{pid}: {command}" for pid, command in intruders.items()],
            )
        tuninglog().info("every running process is whitelisted", extra={"type": "precondition"})
