# solpack/modules/shell.py
# -*- coding: utf-8 -*-
"""
shell.py - run external packaging tools

API:
  runner = CommandRunner(timeout=600)
  res = runner.run(["pkgchk", "-vd", root, name])
  res = runner.run(["pkgproto"], cwd=root, stdin_path=clean, stdout_path=proto_files)
  res = runner.pipe([["pkgsend", "generate", install_dir], ["pkgfmt"]], stdout_path=p5m_1)

Commands are argument vectors, never shell strings. A non-zero exit raises
ExternalToolFailure with the captured output; a timeout raises CommandTimeout.
Pipes run their members one after another, feeding each stdout to the next
stdin, and every member must succeed.
"""

from __future__ import annotations

import os
import time
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from solpack.modules.errors import CommandTimeout, ExternalToolFailure
from solpack.modules.logging import get_logger

logger = get_logger("shell")

PathLike = Union[str, Path]

# tool output is bytes; undecodable bytes (file names in a legacy locale)
# survive as surrogates and are written back unchanged
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


@dataclass
class CommandResult:
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    cwd: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class CommandRunner:
    timeout: Optional[float] = None
    env: Optional[Dict[str, str]] = None
    history: List[CommandResult] = field(default_factory=list)

    def _exec(self, argv: Sequence[PathLike], cwd: Optional[PathLike], input_text: Optional[str]) -> CommandResult:
        args = [str(a) for a in argv]
        logger.debug("RUN: %s (cwd=%s)", " ".join(args), str(cwd) if cwd else None)
        start = time.time()
        try:
            proc = subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                input=input_text,
                capture_output=True,
                text=True,
                encoding=ENCODING,
                errors=ENCODING_ERRORS,
                env=self.env or os.environ.copy(),
                timeout=self.timeout or None,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(args, self.timeout, _text(e.stdout), _text(e.stderr)) from e
        except OSError as e:
            # missing executable or bad cwd
            raise ExternalToolFailure(args, None, "", str(e), message=f"cannot execute {args[0]}: {e}") from e
        except UnicodeError as e:
            raise ExternalToolFailure(args, None, "", str(e), message=f"cannot exchange text with {args[0]}: {e}") from e
        res = CommandResult(args, proc.returncode, proc.stdout or "", proc.stderr or "",
                            time.time() - start, str(cwd) if cwd else None)
        self.history.append(res)
        if proc.returncode != 0:
            logger.error("command failed (rc=%s): %s", proc.returncode, " ".join(args))
            raise ExternalToolFailure(args, proc.returncode, res.stdout, res.stderr)
        return res

    def run(self, argv: Sequence[PathLike], cwd: Optional[PathLike] = None,
            stdin_path: Optional[PathLike] = None, input_text: Optional[str] = None,
            stdout_path: Optional[PathLike] = None, append: bool = False) -> CommandResult:
        """Run one command, optionally reading stdin from a file and writing stdout to one."""
        if stdin_path is not None:
            input_text = Path(stdin_path).read_text(encoding=ENCODING, errors=ENCODING_ERRORS)
        res = self._exec(argv, cwd, input_text)
        if stdout_path is not None:
            _write(stdout_path, res.stdout, append)
        return res

    def pipe(self, commands: Sequence[Sequence[PathLike]], cwd: Optional[PathLike] = None,
             stdout_path: Optional[PathLike] = None, append: bool = False) -> CommandResult:
        """Run ``a | b | c``; the last command's stdout is returned and optionally written."""
        if not commands:
            raise ValueError("pipe needs at least one command")
        data: Optional[str] = None
        res: Optional[CommandResult] = None
        for argv in commands:
            res = self._exec(argv, cwd, data)
            data = res.stdout
        if stdout_path is not None:
            _write(stdout_path, res.stdout, append)
        return res


def _text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def _write(path: PathLike, data: str, append: bool) -> None:
    with open(path, "a" if append else "w", encoding=ENCODING, errors=ENCODING_ERRORS) as fh:
        fh.write(data)
