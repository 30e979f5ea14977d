from __future__ import annotations

import pathlib

from ..utils import helpers as h
from ..utils.errors import ApplyFailure, VerificationMismatch
from ..utils.hwlogging import tuninglog

IRQ_ROOT = pathlib.Path("/proc/irq")


class IrqAffinity:
    """Routes every interrupt to a single cpu and restores the original routing.

    The original masks are saved in a snapshot file, one `path:mask` line per
    affinity file. The snapshot is only written if it does not exist yet, so
    running setup() twice never loses the real original routing, and it is
    only removed once reset() restored every line of it.

    Affinity files listed in skip_list are never read, written or saved.
    """

    def __init__(
        self,
        irq_cpu: int,
        skip_list: tuple[str, ...],
        snapshot_file: pathlib.Path,
        irq_root: pathlib.Path = IRQ_ROOT,
    ):
        self.irq_cpu = irq_cpu
        self.skip_list = skip_list
        self.snapshot_file = snapshot_file
        self.irq_root = irq_root

    def affinity_files(self) -> list[pathlib.Path]:
        """Return the default affinity file then every irq affinity file, by irq number."""
        files = [self.irq_root / "default_smp_affinity"]
        try:
            irqs = sorted(int(entry.name) for entry in self.irq_root.iterdir() if entry.name.isdigit())
        except OSError as e:
            raise ApplyFailure(f"cannot list the interrupts in {self.irq_root}", [str(e)])
        files += [self.irq_root / str(irq) / "smp_affinity" for irq in irqs]
        return [file for file in files if str(file) not in self.skip_list and file.exists()]

    def _read(self, file: pathlib.Path) -> str:
        try:
            return file.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ApplyFailure(f"cannot read {file}", [str(e)])

    def _save(self, file: pathlib.Path, mask: str) -> None:
        try:
            with self.snapshot_file.open("a", encoding="utf-8") as snapshot:
                snapshot.write(f"{file}:{mask}\n")
        except OSError as e:
            raise ApplyFailure(f"cannot save the affinity of {file} in {self.snapshot_file}", [str(e)])

    def _write_mask(self, file: pathlib.Path, mask: str) -> None:
        try:
            file.write_text(f"{mask}\n")
        except OSError as e:
            raise ApplyFailure(f"cannot write {mask} in {file}", [str(e)])
        current = self._read(file)
        try:
            matches = h.parse_cpu_mask(current) == h.parse_cpu_mask(mask)
        except ValueError:
            matches = False
        if not matches:
            raise VerificationMismatch(
                f"{file} does not hold the expected affinity",
                [f"expected: {mask}", f"actual: {current}"],
            )

    def setup(self) -> None:
        log = tuninglog()
        save = not self.snapshot_file.exists()
        if not save:
            log.info(f"{self.snapshot_file} already exists, keeping the original affinities it holds")

        target = h.format_cpu_mask(h.cpu_mask([self.irq_cpu]))
        for file in self.affinity_files():
            previous = self._read(file)
            if save:
                self._save(file, previous)
            self._write_mask(file, target)
            log.info(
                f"write {target} in {file}",
                extra={
                    "value": target,
                    "previous": previous,
                    "type": "procfs",
                    "file": str(file),
                },
            )

    def reset(self) -> None:
        log = tuninglog()
        if not self.snapshot_file.exists():
            log.info(f"no {self.snapshot_file}, interrupt affinities left untouched")
            return

        for line in self._read(self.snapshot_file).splitlines():
            if not line.strip():
                continue
            path, sep, mask = line.rpartition(":")
            if not sep or not path:
                raise ApplyFailure(f"malformed line in {self.snapshot_file}", [line])
            file = pathlib.Path(path)
            if path in self.skip_list:
                log.debug(f"{file} is in the skip list, not restored")
                continue
            if not file.exists():
                # the interrupt source went away since setup()
                log.warning(f"{file} no longer exists, cannot restore {mask}")
                continue
            self._write_mask(file, mask)
            log.info(
                f"restore {mask} in {file}",
                extra={"value": mask, "type": "procfs", "file": str(file)},
            )

        try:
            self.snapshot_file.unlink()
        except OSError as e:
            raise ApplyFailure(f"cannot remove {self.snapshot_file}", [str(e)])
        log.info(f"interrupt affinities restored, {self.snapshot_file} removed")
