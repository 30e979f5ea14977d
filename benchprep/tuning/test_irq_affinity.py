import pathlib
import shutil
from unittest.mock import patch

import pytest

from ..utils.errors import ApplyFailure, VerificationMismatch
from .test_tuning_common import FakeHost


@pytest.fixture
def host(tmp_path):
    return FakeHost(tmp_path)


class TestIrqAffinity:
    def test_setup_routes_every_irq(self, host):
        """Every affinity but the skipped ones is routed to cpu 0 and saved first."""
        host.tuning().irq_affinity.setup()

        affinities = host.affinities()
        for name in ["default_smp_affinity", "1/smp_affinity", "8/smp_affinity", "16/smp_affinity"]:
            assert affinities[name] == b"1\n"
        assert host.snapshot() == [
            f"{host.irq_root}/default_smp_affinity:ff",
            f"{host.irq_root}/1/smp_affinity:0f",
            f"{host.irq_root}/8/smp_affinity:f0",
            f"{host.irq_root}/16/smp_affinity:00000000,000000ff",
        ]

    def test_irq_cpu(self, host):
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.irq_cpu = 5
        irq_affinity.setup()
        assert host.affinities()["8/smp_affinity"] == b"20\n"

    def test_irq_cpu_above_32(self, host):
        """Masks wider than 32 bits are written as comma separated groups."""
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.irq_cpu = 35
        irq_affinity.setup()
        assert host.affinities()["8/smp_affinity"] == b"8,00000000\n"

    def test_restore_is_exact(self, host):
        original = host.affinities()
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.setup()
        assert host.affinities() != original
        irq_affinity.reset()
        assert host.affinities() == original
        assert not host.config.snapshot_file.exists()

    def test_skip_list_is_never_touched(self, host):
        (host.irq_root / "0/smp_affinity").write_text("unreadable\n")
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.setup()
        assert host.affinities()["0/smp_affinity"] == b"unreadable\n"
        assert host.affinities()["2/smp_affinity"] == b"ff\n"
        assert not [line for line in host.snapshot() if "/0/" in line or "/2/" in line]

        # a skipped file listed in a snapshot is not restored either
        with host.config.snapshot_file.open("a") as snapshot:
            snapshot.write(f"{host.irq_root}/2/smp_affinity:3\n")
        irq_affinity.reset()
        assert host.affinities()["2/smp_affinity"] == b"ff\n"

    def test_second_setup_keeps_snapshot(self, host):
        """A second setup without reset must not overwrite the original affinities."""
        original = host.affinities()
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.setup()
        snapshot = host.snapshot()
        irq_affinity.setup()
        assert host.snapshot() == snapshot
        irq_affinity.reset()
        assert host.affinities() == original

    def test_reset_without_snapshot(self, host):
        original = host.affinities()
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.reset()
        irq_affinity.reset()
        assert host.affinities() == original

    def test_vanished_irq(self, host):
        """An irq gone between setup and reset is not an error."""
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.setup()
        shutil.rmtree(host.irq_root / "8")
        irq_affinity.reset()
        assert (host.irq_root / "1/smp_affinity").read_bytes() == b"0f\n"
        assert (host.irq_root / "16/smp_affinity").read_bytes() == b"00000000,000000ff\n"
        assert not host.config.snapshot_file.exists()

    def test_failed_restore_keeps_snapshot(self, host):
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.setup()
        snapshot = host.snapshot()
        # writing a directory fails like a write refused by the kernel
        file = host.irq_root / "16/smp_affinity"
        file.unlink()
        file.mkdir()
        with pytest.raises(ApplyFailure):
            irq_affinity.reset()
        assert host.snapshot() == snapshot

    def test_readback_mismatch(self, host):
        """The kernel ignoring a write is fatal, what was saved is kept."""
        real_read_text = pathlib.Path.read_text

        def ignored_write(path, *args, **kwargs):
            if path == host.irq_root / "8/smp_affinity":
                return "f0\n"
            return real_read_text(path, *args, **kwargs)

        irq_affinity = host.tuning().irq_affinity
        with patch.object(pathlib.Path, "read_text", autospec=True, side_effect=ignored_write):
            with pytest.raises(VerificationMismatch) as exc:
                irq_affinity.setup()
        assert exc.value.details == ["expected: 1", "actual: f0"]
        assert host.snapshot()[-1] == f"{host.irq_root}/8/smp_affinity:f0"
        # irq 16 was never reached
        assert host.affinities()["16/smp_affinity"] == b"00000000,000000ff\n"

    def test_malformed_snapshot(self, host):
        host.config.snapshot_file.write_text("garbage\n")
        with pytest.raises(ApplyFailure):
            host.tuning().irq_affinity.reset()
        assert host.config.snapshot_file.exists()

    def test_snapshot_in_missing_directory(self, host):
        original = host.affinities()
        irq_affinity = host.tuning().irq_affinity
        irq_affinity.snapshot_file = host.root / "missing-dir" / "irq_affinity.snapshot"
        with pytest.raises(ApplyFailure) as exc:
            irq_affinity.setup()
        assert exc.value.message.startswith("cannot save the affinity of")
        # nothing is written before it was saved
        assert host.affinities() == original

    def test_unreadable_snapshot(self, host):
        host.config.snapshot_file.mkdir()
        with pytest.raises(ApplyFailure):
            host.tuning().irq_affinity.reset()

    def test_unreadable_affinity(self, host):
        file = host.irq_root / "8/smp_affinity"
        file.unlink()
        file.mkdir()
        with pytest.raises(ApplyFailure) as exc:
            host.tuning().irq_affinity.setup()
        assert exc.value.message == f"cannot read {file}"
