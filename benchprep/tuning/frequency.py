from __future__ import annotations

from typing import Optional

from ..environment.cpufreq import CpuFreq
from ..utils.errors import VerificationMismatch
from ..utils.external import External_Simple
from ..utils.hwlogging import tuninglog

MANUAL_GOVERNOR = "userspace"


class Frequency:
    """Pins every logical cpu to a fixed frequency and gives it back to an adaptive governor.

    cpupower can succeed while only part of the cpus were changed, so the
    result is always read back from sysfs.
    """

    def __init__(self, fixed_frequency_mhz: int, adaptive_governor: str, cpufreq: Optional[CpuFreq] = None):
        self.fixed_frequency_mhz = fixed_frequency_mhz
        self.adaptive_governor = adaptive_governor
        self.cpufreq = cpufreq or CpuFreq()

    def set_fixed(self) -> None:
        previous = self.cpufreq.governors()
        External_Simple(
            ["cpupower", "-c", "all", "frequency-set", "-f", f"{self.fixed_frequency_mhz}MHz"],
            "cpupower-frequency-set",
        )
        self._verify_governor(MANUAL_GOVERNOR)
        expected_khz = self.fixed_frequency_mhz * 1000
        wrong = [f"cpu{cpu}: {freq} kHz" for cpu, freq in self.cpufreq.frequencies().items() if freq != expected_khz]
        if wrong:
            raise VerificationMismatch(f"cpus are not running at {self.fixed_frequency_mhz} MHz", wrong)
        tuninglog().info(
            f"every cpu runs at {self.fixed_frequency_mhz} MHz with the {MANUAL_GOVERNOR} governor",
            extra={
                "value": expected_khz,
                "previous": sorted({g for g in previous.values() if g}),
                "type": "sysfs",
                "file": "cpufreq/scaling_cur_freq",
            },
        )

    def reset_adaptive(self) -> None:
        External_Simple(
            ["cpupower", "-c", "all", "frequency-set", "-g", self.adaptive_governor],
            "cpupower-governor-set",
        )
        self._verify_governor(self.adaptive_governor)
        tuninglog().info(
            f"every cpu uses the {self.adaptive_governor} governor",
            extra={"value": self.adaptive_governor, "type": "sysfs", "file": "cpufreq/scaling_governor"},
        )

    def _verify_governor(self, governor: str) -> None:
        governors = self.cpufreq.governors()
        if not governors:
            raise VerificationMismatch("no logical cpu exposes a cpufreq policy")
        wrong = [f"cpu{cpu}: {current}" for cpu, current in governors.items() if current != governor]
        if wrong:
            raise VerificationMismatch(f"cpus are not using the {governor} governor", wrong)
