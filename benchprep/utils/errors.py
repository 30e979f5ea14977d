from __future__ import annotations

from typing import Optional


class TuningError(Exception):
    """Base class of every error that must abort benchprep.

    The message is a single line, details are optional diagnostic lines
    (expected/actual values, raw tool output, offending pids, ...).
    """

    def __init__(self, message: str, details: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ConfigError(TuningError):
    """The configuration file is unreadable or malformed."""


class PreconditionMismatch(TuningError):
    """A live system property does not match the expected baseline."""


class ApplyFailure(TuningError):
    """An external tool or a kernel interface reported a failure."""


class VerificationMismatch(TuningError):
    """A change was applied but the resulting state is not the target one."""
