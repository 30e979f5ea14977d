from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
from typing import Optional

from ..utils import helpers as h
from ..utils.errors import ConfigError


@dataclasses.dataclass(frozen=True)
class ServiceEntry:
    """A process name and the units that must be stopped to get rid of it.

    The process name is compared to /proc/<pid>/comm, so it is truncated
    to 15 characters like the kernel does.
    """

    process: str
    units: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class Baseline:
    kernel_release: str
    threads_per_core: int
    turbo_boost: bool
    numa_nodes: int
    frequency_driver: str
    process_whitelist: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class Config:
    baseline: Baseline
    services: tuple[ServiceEntry, ...]
    fixed_frequency_mhz: int
    adaptive_governor: str
    cpu_shield: str
    irq_cpu: int
    irq_skip_list: tuple[str, ...]
    snapshot_file: pathlib.Path


DEFAULT_PROCESS_WHITELIST = (
    # kernel threads
    "kthreadd",
    "kworker",
    "ksoftirqd",
    "kswapd",
    "kcompactd",
    "khugepaged",
    "kauditd",
    "kdevtmpfs",
    "khungtaskd",
    "kintegrityd",
    "kblockd",
    "kthrotld",
    "ksmd",
    "migration",
    "cpuhp",
    "idle_inject",
    "rcu_",
    "watchdog",
    "oom_reaper",
    "writeback",
    "netns",
    "mm_percpu_wq",
    "inet_frag_wq",
    "irq/",
    "jbd2",
    "ext4",
    "scsi_",
    "ata_sff",
    "nvme",
    "md",
    "edac-poller",
    "devfreq_wq",
    "ipv6_addrconf",
    "zswap",
    "charger_manager",
    "cryptd",
    "loop",
    # userland
    "systemd",
    "dbus",
    "agetty",
    "login",
    "sshd",
    "bash",
    "sh",
    "sudo",
    "tmux",
    "screen",
    "benchprep",
    "python",
    "cset",
    "cpupower",
)

DEFAULT_SERVICES = (
    ServiceEntry("cron", ("cron.service",)),
    ServiceEntry("irqbalance", ("irqbalance.service",)),
    ServiceEntry("snapd", ("snapd.service", "snapd.socket")),
    ServiceEntry("unattended-upgr", ("unattended-upgrades.service",)),
    ServiceEntry("packagekitd", ("packagekit.service",)),
    ServiceEntry("rsyslogd", ("rsyslog.service", "syslog.socket")),
)

# x86 timer and cascade interrupts refuse any affinity change
DEFAULT_IRQ_SKIP_LIST = (
    "/proc/irq/0/smp_affinity",
    "/proc/irq/2/smp_affinity",
)

DEFAULT_CONFIG = Config(
    baseline=Baseline(
        kernel_release="6.1.0-13-amd64",
        threads_per_core=1,
        turbo_boost=False,
        numa_nodes=1,
        frequency_driver="acpi-cpufreq",
        process_whitelist=DEFAULT_PROCESS_WHITELIST,
    ),
    services=DEFAULT_SERVICES,
    fixed_frequency_mhz=2000,
    adaptive_governor="ondemand",
    cpu_shield="2-7",
    irq_cpu=0,
    irq_skip_list=DEFAULT_IRQ_SKIP_LIST,
    snapshot_file=pathlib.Path("irq_affinity.snapshot"),
)

VALID_KEYWORDS = {
    "baseline": [
        "kernel_release",
        "threads_per_core",
        "turbo_boost",
        "numa_nodes",
        "frequency_driver",
        "process_whitelist",
    ],
    "frequency": ["fixed_frequency_mhz", "adaptive_governor"],
    "shield": ["cpu_shield"],
    "irq": ["irq_cpu", "skip", "snapshot_file"],
    # keys of the services section are process names
    "services": [],
}


def load_config(config_file: Optional[str]) -> Config:
    """Return the configuration, overridden by config_file if any."""
    if not config_file:
        return DEFAULT_CONFIG
    if not os.path.isfile(config_file):
        raise ConfigError(f"File '{config_file}' does not exist.")

    parser = configparser.RawConfigParser()
    # process names are case sensitive
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        parser.read(config_file)
    except configparser.Error as e:
        raise ConfigError(f"Cannot parse {config_file}", [str(e)])

    validate_sections(parser, config_file)
    try:
        return _build_config(parser, pathlib.Path(config_file).parent)
    except ValueError as e:
        raise ConfigError(f"Invalid value in {config_file}", [str(e)])


def validate_sections(parser: configparser.RawConfigParser, config_file: str) -> None:
    errors = []
    for section in parser.sections():
        if section not in VALID_KEYWORDS:
            errors.append(f"unknown section [{section}]")
            continue
        if section == "services":
            continue
        for key in parser[section]:
            if key not in VALID_KEYWORDS[section]:
                errors.append(f"unknown keyword '{key}' in section [{section}]")
    if errors:
        raise ConfigError(f"Invalid configuration file {config_file}", errors)


def read_whitelist(whitelist_file: str) -> tuple[str, ...]:
    """Read a process whitelist: one prefix per line, '#' starts a comment."""
    try:
        content = pathlib.Path(whitelist_file).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read process whitelist {whitelist_file}", [str(e)])
    prefixes = []
    for line in content.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            prefixes.append(line)
    return tuple(prefixes)


def _parse_turbo_boost(value: str) -> bool:
    value = value.strip().lower()
    if value in ("enabled", "on", "1", "true", "yes"):
        return True
    if value in ("disabled", "off", "0", "false", "no"):
        return False
    raise ValueError(f"turbo_boost: {value} is not a valid state")


def _build_config(parser: configparser.RawConfigParser, config_dir: pathlib.Path) -> Config:
    default = DEFAULT_CONFIG
    baseline = default.baseline
    if parser.has_section("baseline"):
        section = parser["baseline"]
        whitelist = baseline.process_whitelist
        if "process_whitelist" in section:
            # relative to the configuration file, not to the working directory
            whitelist = read_whitelist(str(config_dir / section["process_whitelist"]))
        baseline = Baseline(
            kernel_release=section.get("kernel_release", baseline.kernel_release),
            threads_per_core=section.getint("threads_per_core", baseline.threads_per_core),
            turbo_boost=_parse_turbo_boost(section["turbo_boost"]) if "turbo_boost" in section else baseline.turbo_boost,
            numa_nodes=section.getint("numa_nodes", baseline.numa_nodes),
            frequency_driver=section.get("frequency_driver", baseline.frequency_driver),
            process_whitelist=whitelist,
        )

    services = default.services
    if parser.has_section("services"):
        services = tuple(
            ServiceEntry(process, tuple(units.split())) for process, units in parser.items("services")
        )
        for entry in services:
            if not entry.units:
                raise ValueError(f"services: no unit defined for {entry.process}")

    fixed_frequency_mhz = default.fixed_frequency_mhz
    adaptive_governor = default.adaptive_governor
    if parser.has_section("frequency"):
        fixed_frequency_mhz = parser["frequency"].getint("fixed_frequency_mhz", fixed_frequency_mhz)
        adaptive_governor = parser["frequency"].get("adaptive_governor", adaptive_governor)
    if fixed_frequency_mhz <= 0:
        raise ValueError(f"fixed_frequency_mhz: {fixed_frequency_mhz} is not a valid frequency")

    cpu_shield = default.cpu_shield
    if parser.has_section("shield"):
        cpu_shield = parser["shield"].get("cpu_shield", cpu_shield)
    # fail early on a malformed range
    h.parse_cpu_range(cpu_shield)

    irq_cpu = default.irq_cpu
    irq_skip_list = default.irq_skip_list
    snapshot_file = default.snapshot_file
    if parser.has_section("irq"):
        section = parser["irq"]
        irq_cpu = section.getint("irq_cpu", irq_cpu)
        if "skip" in section:
            irq_skip_list = tuple(section["skip"].split())
        snapshot_file = pathlib.Path(section.get("snapshot_file", str(snapshot_file)))
    if irq_cpu < 0:
        raise ValueError(f"irq_cpu: {irq_cpu} is not a valid cpu")

    return Config(
        baseline=baseline,
        services=services,
        fixed_frequency_mhz=fixed_frequency_mhz,
        adaptive_governor=adaptive_governor,
        cpu_shield=cpu_shield,
        irq_cpu=irq_cpu,
        irq_skip_list=irq_skip_list,
        snapshot_file=snapshot_file,
    )
