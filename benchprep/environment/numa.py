from __future__ import annotations

import re

from ..utils.external import External


class NUMA(External):
    def run_cmd(self) -> list[str]:
        """Raw NUMA information"""
        return ["numactl", "-H"]

    def parse_cmd(self, stdout: bytes, _stderr: bytes):
        for line in stdout.decode("utf-8").split("\n"):
            # node 0 cpus: 0 1 2 3 4 5 6 7 32 33 34 35 36 37 38 39
            match = re.search(r"node (?P<node>[0-9]+) cpus:(?P<cpus>.*)", line)
            if match:
                self.numa_domains[int(match.group("node"))] = [int(cpu) for cpu in match.group("cpus").split()]
        return self.numa_domains

    @property
    def name(self) -> str:
        return "numactl"

    def __init__(self):
        super().__init__()
        self.numa_domains: dict[int, list[int]] = {}

    def count(self) -> int:
        return len(self.numa_domains)
