from __future__ import annotations

import dataclasses
from typing import Optional

from ..config.config import Config
from ..environment.preconditions import Preconditions
from ..utils.hwlogging import tuninglog
from .frequency import Frequency
from .irq_affinity import IrqAffinity
from .services import Services
from .shield import Shield


@dataclasses.dataclass(frozen=True)
class SetOptions:
    services: bool = True
    frequency_control: bool = True
    shielding: bool = True
    interrupt_affinity: bool = True


class Tuning:
    def __init__(
        self,
        config: Config,
        preconditions: Optional[Preconditions] = None,
        services: Optional[Services] = None,
        frequency: Optional[Frequency] = None,
        shield: Optional[Shield] = None,
        irq_affinity: Optional[IrqAffinity] = None,
    ):
        self.config = config
        self.preconditions = preconditions or Preconditions(config.baseline)
        self.services = services or Services(config.services)
        self.frequency = frequency or Frequency(config.fixed_frequency_mhz, config.adaptive_governor)
        self.shield = shield or Shield(config.cpu_shield)
        self.irq_affinity = irq_affinity or IrqAffinity(config.irq_cpu, config.irq_skip_list, config.snapshot_file)

    def set(self, options: SetOptions = SetOptions()) -> None:
        """Check the baseline, then apply every enabled tuning in a fixed order."""
        log = tuninglog()
        self.preconditions.run()
        steps = [
            (options.services, "services", self.services.stop),
            (options.frequency_control, "frequency-control", self.frequency.set_fixed),
            (options.shielding, "shielding", self.shield.setup),
            (options.interrupt_affinity, "interrupt-affinity", self.irq_affinity.setup),
        ]
        for enabled, name, apply in steps:
            if not enabled:
                log.info(f"{name} has been disabled on the benchprep command line")
                continue
            apply()
        log.info("benchmarking environment is set")

    def reset(self) -> None:
        """Undo every tuning, whatever set() was asked to do."""
        self.irq_affinity.reset()
        self.shield.teardown()
        self.frequency.reset_adaptive()
        self.services.start()
        tuninglog().info("benchmarking environment is reset")
