# solpack/modules/errors.py
"""
Exception classes shared by the packaging pipeline and the publisher.

Every error carries an optional ``stage`` so the pipeline driver can attribute a
failure to the stage that raised it.
"""

from __future__ import annotations

import shlex
from typing import List, Optional, Sequence


class SolpackError(Exception):
    """Base class for solpack errors."""

    kind = "error"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self):
        return {"kind": self.kind, "message": self.message, "stage": self.stage}


class ValidationError(SolpackError):
    """Malformed project metadata, configuration or artifact."""

    kind = "validation"


class TemplateRenderError(SolpackError):
    kind = "template"


class StagingError(SolpackError):
    kind = "staging"


class PublishFailure(SolpackError):
    """Upload rejected by the remote repository or network failure."""

    kind = "publish"

    def __init__(self, message: str, status: Optional[int] = None, body: str = "", stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.status = status
        self.body = body

    def to_dict(self):
        d = super().to_dict()
        d.update({"status": self.status, "body": self.body})
        return d


class ExternalToolFailure(SolpackError):
    """An external command exited non-zero."""

    kind = "external-tool"

    def __init__(self, argv: Sequence[str], returncode: Optional[int], stdout: str = "", stderr: str = "",
                 stage: Optional[str] = None, message: Optional[str] = None):
        self.argv: List[str] = [str(a) for a in argv]
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(message or f"command failed with exit code {returncode}: {self.command_line}", stage=stage)

    @property
    def command_line(self) -> str:
        return " ".join(shlex.quote(a) for a in self.argv)

    def describe(self) -> str:
        lines = [self.message]
        if self.stdout.strip():
            lines.append("--- stdout ---")
            lines.append(self.stdout.rstrip())
        if self.stderr.strip():
            lines.append("--- stderr ---")
            lines.append(self.stderr.rstrip())
        return "\n".join(lines)

    def to_dict(self):
        d = super().to_dict()
        d.update({"argv": self.argv, "returncode": self.returncode, "stdout": self.stdout, "stderr": self.stderr})
        return d


class CommandTimeout(ExternalToolFailure):
    """An external command exceeded its timeout and was killed."""

    kind = "timeout"

    def __init__(self, argv: Sequence[str], timeout: float, stdout: str = "", stderr: str = "", stage: Optional[str] = None):
        self.timeout = timeout
        super().__init__(argv, None, stdout, stderr, stage=stage,
                         message=f"command timed out after {timeout}s: {' '.join(shlex.quote(str(a)) for a in argv)}")

    def to_dict(self):
        d = super().to_dict()
        d["timeout"] = self.timeout
        return d
