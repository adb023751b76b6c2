# solpack/modules/staging.py
"""
Per-build staging area.

A staging area is a private scratch directory owned by exactly one build. It
must be fresh when the build starts; re-running a pipeline against a staging
area left behind by an earlier run is refused.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from solpack.modules.errors import StagingError
from solpack.modules.logging import get_logger

logger = get_logger("staging")

_MARKER = ".solpack-staging"


class StagingArea:
    def __init__(self, root: Path):
        self.root = Path(root)
        self.removed = False

    @classmethod
    def create(cls, name: str, parent: Optional[Union[str, Path]] = None) -> "StagingArea":
        if parent is not None:
            Path(parent).mkdir(parents=True, exist_ok=True)
        tmp = tempfile.mkdtemp(prefix=f"solpack-{name}-", dir=str(parent) if parent else None)
        area = cls(Path(tmp))
        area.claim()
        logger.debug("staging: created %s", tmp)
        return area

    @classmethod
    def at(cls, root: Union[str, Path]) -> "StagingArea":
        """Use an explicit directory, which must be missing or empty."""
        root = Path(root)
        if root.exists() and any(root.iterdir()):
            raise StagingError(f"staging area {root} is not empty; a fresh directory is required")
        root.mkdir(parents=True, exist_ok=True)
        area = cls(root)
        area.claim()
        return area

    def claim(self) -> None:
        marker = self.root / _MARKER
        if marker.exists():
            raise StagingError(f"staging area {self.root} was already used by another build")
        marker.write_text(str(os.getpid()), encoding="utf-8")

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def mkdir(self, *parts: str) -> Path:
        p = self.path(*parts)
        p.mkdir(parents=True, exist_ok=True)
        return p

    def write_text(self, name: str, content: str) -> Path:
        p = self.path(name)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        return p

    def copy_file(self, source: Union[str, Path], name: str) -> Path:
        dest = self.path(name)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(str(source), str(dest))
        return dest

    def destroy(self) -> None:
        if self.removed:
            return
        shutil.rmtree(str(self.root), ignore_errors=True)
        self.removed = True
        logger.debug("staging: removed %s", self.root)

    def __repr__(self):
        return f"StagingArea({str(self.root)!r})"
