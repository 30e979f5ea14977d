from __future__ import annotations

import pathlib

from ..utils.errors import ApplyFailure

PROC_ROOT = pathlib.Path("/proc")


class ProcessTable:
    """A view of the running processes built from /proc/<pid>/comm."""

    def __init__(self, proc_root: pathlib.Path = PROC_ROOT):
        self.proc_root = proc_root

    def commands(self) -> dict[int, str]:
        """Return the command name of every running process, indexed by pid."""
        commands = {}
        try:
            entries = list(self.proc_root.iterdir())
        except OSError as e:
            raise ApplyFailure(f"cannot list the processes in {self.proc_root}", [str(e)])
        for entry in entries:
            if not entry.name.isdigit():
                continue
            try:
                commands[int(entry.name)] = (entry / "comm").read_text(encoding="utf-8").rstrip("\n")
            except (FileNotFoundError, ProcessLookupError):
                # the process exited while we were walking /proc
                continue
            except OSError as e:
                raise ApplyFailure(f"cannot read the command of process {entry.name}", [str(e)])
        return dict(sorted(commands.items()))

    def pids_named(self, name: str) -> list[int]:
        return [pid for pid, command in self.commands().items() if command == name]

    def not_matching(self, prefixes: tuple[str, ...]) -> dict[int, str]:
        """Return the processes whose command name starts with none of the prefixes."""
        return {pid: command for pid, command in self.commands().items() if not command.startswith(prefixes)}
