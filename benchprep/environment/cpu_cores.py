from __future__ import annotations

from collections import defaultdict

from ..utils.external import External


class CPU_CORES(External):
    def run_cmd(self) -> list[str]:
        """Raw topology of the online cpus"""
        return ["lscpu", "--online", "-pSOCKET,CORE,CPU"]

    def parse_cmd(self, stdout: bytes, _stderr: bytes):
        for line in stdout.decode("utf-8").splitlines():
            if not line or line.startswith("#"):
                continue
            fields = line.split(",", 2)
            # lscpu leaves the fields of some cpus empty in virtual machines
            if "" in fields:
                continue
            socket, core, cpu = map(int, fields)
            self.sockets[socket][core].append(cpu)
        for socket in self.sockets.values():
            for cpus in socket.values():
                cpus.sort()
        return self.sockets

    @property
    def name(self) -> str:
        return "lscpu_cores"

    def __init__(self):
        super().__init__()
        self.sockets: defaultdict[int, defaultdict[int, list[int]]] = defaultdict(lambda: defaultdict(list))

    def get_socket(self, number) -> dict[int, list[int]]:
        return self.sockets[number]

    def get_threads_per_core(self) -> int:
        """Return the highest number of logical cpus sharing a physical core."""
        threads = [len(cpus) for socket in self.sockets for cpus in self.get_socket(socket).values()]
        return max(threads, default=0)
