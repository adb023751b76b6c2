# solpack/modules/artifact.py
"""
Built package artifacts and their ``.metadata.json`` sidecars.
"""

from __future__ import annotations

import json
import hashlib
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

from solpack.modules.errors import ValidationError

METADATA_SUFFIX = ".metadata.json"


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _md5_file(path: Path) -> str:
    h = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


class Package:
    """A package file on disk, identified by name and path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def metadata_path(self) -> Path:
        return self.path.with_name(self.path.name + METADATA_SUFFIX)

    @property
    def metadata(self) -> Dict[str, Any]:
        try:
            return json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"cannot read metadata for {self.name}: {e}") from e

    def validate(self) -> None:
        """Raise ValidationError unless the file and a well-formed sidecar exist."""
        if not self.path.is_file():
            raise ValidationError(f"package file {self.path} does not exist")
        if not self.metadata_path.is_file():
            raise ValidationError(f"package metadata {self.metadata_path} does not exist")
        meta = self.metadata
        for key in ("name", "version", "arch", "basename", "sha256"):
            if not meta.get(key):
                raise ValidationError(f"package metadata for {self.name} is missing '{key}'")
        if meta["basename"] != self.name:
            raise ValidationError(f"package metadata basename {meta['basename']!r} does not match {self.name!r}")

    def __repr__(self):
        return f"Package({str(self.path)!r})"


def write_metadata(package: Package, *, name: str, friendly_name: str, version: str, iteration: str,
                   arch: str, platform: str, fmri: Optional[str] = None) -> Path:
    data = {
        "basename": package.name,
        "name": name,
        "friendly_name": friendly_name,
        "version": version,
        "iteration": iteration,
        "arch": arch,
        "platform": platform,
        "md5": _md5_file(package.path),
        "sha256": _sha256_file(package.path),
        "generated_at": int(time.time()),
    }
    if fmri:
        data["fmri"] = fmri
    out = package.metadata_path
    tmp = out.with_name(out.name + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    tmp.replace(out)
    return out
