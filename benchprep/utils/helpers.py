import sys
from shutil import which
from typing import NoReturn, Optional

from .hwlogging import tuninglog

# Every failure, usage errors included, exits with this status
EXIT_FAILURE = 42


def fatal(message, details: Optional[list[str]] = None) -> NoReturn:
    tuninglog().error(message, extra={"details": details or []})
    for line in details or []:
        print(f"  {line}", flush=True)
    sys.exit(EXIT_FAILURE)


def is_binary_available(binary_name: str) -> bool:
    """A function to check if a binary is available"""
    return which(binary_name) is not None


def cpu_list_to_range(cpu_list: list[int]) -> str:
    """
    This function takes a list of integers as input and will link them together in a nicely formatted string
    - `[0, 1, 2, 3, 4, 5]` will give `"0-5"`
    - `[0, 4, 2, 3, 7, 8, 9]` will give `"0, 2-4, 7-9"`

    It was made specifically for formatting a CPU cores list
    """
    output: list[str] = []
    cpus = sorted(set(cpu_list))
    if not cpus:
        return ""
    first = previous = cpus[0]
    for cpu in cpus[1:] + [None]:
        if cpu is not None and cpu == previous + 1:
            previous = cpu
            continue
        output.append(str(first) if first == previous else f"{first}-{previous}")
        if cpu is not None:
            first = previous = cpu
    return ", ".join(output)


def parse_cpu_range(cpu_range: str) -> list[int]:
    """Turn a cpuset style list ("2-5,8") into the sorted list of cpus."""
    cpus: set[int] = set()
    for item in cpu_range.replace(" ", "").split(","):
        if not item:
            continue
        if "-" in item:
            low, high = item.split("-", 1)
            if int(low) > int(high):
                raise ValueError(f"invalid cpu range {item}")
            cpus.update(range(int(low), int(high) + 1))
        else:
            cpus.add(int(item))
    if not cpus:
        raise ValueError(f"empty cpu range '{cpu_range}'")
    return sorted(cpus)


def cpu_mask(cpu_list: list[int]) -> int:
    """Return the affinity bitmask selecting the given logical cpus."""
    mask = 0
    for cpu in cpu_list:
        mask |= 1 << cpu
    return mask


def format_cpu_mask(mask: int) -> str:
    """Format an affinity mask the way the kernel parses it.

    The kernel refuses hexadecimal groups longer than 32 bits, so large
    masks are split with commas: `8,00000000` selects cpu 35.
    """
    groups = [mask & 0xFFFFFFFF]
    mask >>= 32
    while mask:
        groups.append(mask & 0xFFFFFFFF)
        mask >>= 32
    groups.reverse()
    return ",".join([f"{groups[0]:x}"] + [f"{group:08x}" for group in groups[1:]])


def parse_cpu_mask(text: str) -> int:
    """Parse an affinity mask as printed by the kernel.

    Masks are hexadecimal, grouped by 32 bits with commas on large systems:
    `00000000,00000001`.
    """
    return int(text.strip().replace(",", ""), 16)
