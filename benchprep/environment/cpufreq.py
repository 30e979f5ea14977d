from __future__ import annotations

import pathlib
import re
from typing import Optional

from ..utils.errors import ApplyFailure

CPU_ROOT = pathlib.Path("/sys/devices/system/cpu")
CPU_DIR_RE = re.compile(r"cpu(\d+)$")


def read_sysfs(path: pathlib.Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ApplyFailure(f"cannot read {path}", [str(e)])


class CpuFreq:
    """Reads the cpufreq state the kernel exposes in sysfs."""

    def __init__(self, cpu_root: pathlib.Path = CPU_ROOT):
        self.cpu_root = cpu_root

    def logical_cpus(self) -> list[int]:
        cpus = []
        try:
            entries = list(self.cpu_root.iterdir())
        except OSError as e:
            raise ApplyFailure(f"cannot list the cpus in {self.cpu_root}", [str(e)])
        for cpu_dir in entries:
            match = CPU_DIR_RE.match(cpu_dir.name)
            if match and cpu_dir.is_dir():
                cpus.append(int(match.group(1)))
        return sorted(cpus)

    def _read_cpu_file(self, cpu: int, name: str) -> Optional[str]:
        path = self.cpu_root / f"cpu{cpu}" / "cpufreq" / name
        if not path.exists():
            return None
        return read_sysfs(path)

    def governors(self) -> dict[int, Optional[str]]:
        """Return the scaling governor of every logical cpu, None if it has no cpufreq policy."""
        return {cpu: self._read_cpu_file(cpu, "scaling_governor") for cpu in self.logical_cpus()}

    def frequencies(self) -> dict[int, Optional[int]]:
        """Return the current frequency of every logical cpu, in kHz."""
        frequencies: dict[int, Optional[int]] = {}
        for cpu in self.logical_cpus():
            value = self._read_cpu_file(cpu, "scaling_cur_freq")
            try:
                frequencies[cpu] = int(value) if value else None
            except ValueError:
                raise ApplyFailure(f"cpu{cpu} reports an invalid frequency", [value])
        return frequencies

    def driver(self) -> Optional[str]:
        cpus = self.logical_cpus()
        if not cpus:
            return None
        return self._read_cpu_file(cpus[0], "scaling_driver")

    def turbo_boost_enabled(self) -> bool:
        # please read https://www.kernel.org/doc/html/latest/admin-guide/pm/intel_pstate.html
        no_turbo = self.cpu_root / "intel_pstate" / "no_turbo"
        if no_turbo.exists():
            return read_sysfs(no_turbo) != "1"
        # and https://www.kernel.org/doc/Documentation/cpu-freq/boost.txt
        boost = self.cpu_root / "cpufreq" / "boost"
        if boost.exists():
            return read_sysfs(boost) != "0"
        # no boost support at all
        return False
