from __future__ import annotations

import os
import subprocess
from abc import ABC, abstractmethod

from . import helpers as h
from .errors import ApplyFailure
from .hwlogging import tuninglog


def output_lines(stdout: bytes, stderr: bytes) -> list[str]:
    """Turn the raw outputs of a command into diagnostic lines."""
    lines = []
    for stream in (stdout, stderr):
        lines += [line for line in stream.decode("utf-8", errors="replace").splitlines() if line.strip()]
    return lines


class External(ABC):
    def __init__(self):
        self.returncode = None

    @abstractmethod
    def run_cmd(self) -> list[str]:
        return []

    @property
    @abstractmethod
    def name(self) -> str:
        return ""

    @abstractmethod
    def parse_cmd(self, stdout: bytes, stderr: bytes):
        return {}

    def tolerate_failure(self, stdout: bytes, stderr: bytes) -> bool:
        """Return True if a non-zero exit status must not abort benchprep."""
        return False

    def run(self):
        """Returns the output of parse_cmd"""
        cmd = self.run_cmd()
        if not h.is_binary_available(cmd[0]):
            raise ApplyFailure(f"{cmd[0]} is not installed, cannot run {self.name}")

        english_env = os.environ.copy()
        english_env["LC_ALL"] = "C"
        tuninglog().debug(f"running {' '.join(cmd)}", extra={"type": "command", "cmd": cmd})
        out = subprocess.run(
            cmd,
            capture_output=True,
            env=english_env,
        )
        self.returncode = out.returncode
        for line in output_lines(out.stdout, out.stderr):
            tuninglog().debug(f"{self.name}: {line}")

        if out.returncode != 0 and not self.tolerate_failure(out.stdout, out.stderr):
            raise ApplyFailure(
                f"'{' '.join(cmd)}' failed with exit status {out.returncode}",
                output_lines(out.stdout, out.stderr),
            )

        return self.parse_cmd(out.stdout, out.stderr)


class External_Simple(External):
    # A simple implementation of External to immediately execute a command list
    def __init__(self, cmd_list: list[str], cmd_name=None, check=True):
        self.cmd_list = cmd_list
        # Optional command name, used in logs and errors
        self.cmd_name = cmd_name
        # An unchecked command only records its exit status
        self.check = check
        super().__init__()
        self.run()

    @property
    def name(self) -> str:
        if not self.cmd_name:
            return self.cmd_list[0]
        return self.cmd_name

    def run_cmd(self) -> list[str]:
        return self.cmd_list

    def tolerate_failure(self, stdout: bytes, stderr: bytes) -> bool:
        return not self.check

    def parse_cmd(self, stdout: bytes, stderr: bytes):
        return {}
