import pathlib

from . import cpu_cores, numa

PARSING = pathlib.Path(__file__).parents[1] / "tests" / "parsing"


def load(target, d: pathlib.Path):
    print(f"parsing test {d.name}")
    stdout = (d / "stdout").read_bytes()
    stderr = (d / "stderr").read_bytes()
    target.parse_cmd(stdout, stderr)
    return target


class TestParseCPU:
    def test_parsing_cpu_cores(self):
        for d in sorted((PARSING / "cpu_cores").iterdir()):
            test_target = load(cpu_cores.CPU_CORES(), d)

            if d.name == "smt_off":
                assert len(test_target.get_socket(0)) == 8
                assert test_target.get_threads_per_core() == 1
                assert test_target.get_socket(0)[3] == [3]

            if d.name == "smt_on":
                assert test_target.get_threads_per_core() == 2
                assert test_target.get_socket(1)[5] == [5, 13]

            if d.name == "vm":
                # cpu 2 has no topology and is ignored
                assert sum(len(cpus) for cpus in test_target.get_socket(0).values()) == 3
                assert test_target.get_threads_per_core() == 1

    def test_empty_topology(self):
        test_target = cpu_cores.CPU_CORES()
        test_target.parse_cmd(b"", b"")
        assert test_target.get_threads_per_core() == 0

    def test_parsing_numa_1_domain(self):
        test_target = load(numa.NUMA(), PARSING / "numa" / "1domain")
        assert test_target.count() == 1
        assert test_target.numa_domains[0] == list(range(8))

    def test_parsing_numa_2_domains(self):
        test_target = load(numa.NUMA(), PARSING / "numa" / "2domains")
        assert test_target.count() == 2
        assert test_target.numa_domains[1] == [4, 5, 6, 7, 12, 13, 14, 15]
        assert 2 not in test_target.numa_domains
