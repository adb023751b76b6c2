# solpack/modules/filesync.py
# -*- coding: utf-8 -*-
"""
filesync.py - copy install trees into a staging area and filter file lists

- sync(): mirror a directory tree with glob exclusions (files, dirs, symlinks);
  anything in the destination that is not in the source is removed
- filesystem_directories(): the static list of system directories that a
  package must never claim (loaded once per path)
- filter_file_list(): drop Prototype entries with whitespace or that name a
  system directory
"""

from __future__ import annotations

import os
import re
import shutil
import fnmatch
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Sequence, Union

from solpack.modules.logging import get_logger

logger = get_logger("filesync")

_WHITESPACE_RE = re.compile(r"\s")


def _is_excluded(relpath: str, patterns: Sequence[str]) -> bool:
    for pat in patterns:
        if fnmatch.fnmatchcase(relpath, pat) or fnmatch.fnmatchcase(relpath, pat.rstrip("/") + "/*"):
            return True
    return False


def sync(source: Union[str, Path], destination: Union[str, Path], exclude: Optional[Sequence[str]] = None,
         prune: bool = True) -> List[str]:
    """
    Mirror ``source`` into ``destination``. Returns the relative paths copied.

    Exclusion patterns are globs matched against paths relative to ``source``;
    excluding a directory excludes everything below it.
    """
    src = Path(source)
    dst = Path(destination)
    if not src.is_dir():
        raise FileNotFoundError(f"sync source {src} is not a directory")
    patterns = list(exclude or [])
    dst.mkdir(parents=True, exist_ok=True)
    copied: List[str] = []

    for dirpath, dirnames, filenames in os.walk(src):
        rel_dir = os.path.relpath(dirpath, src)
        rel_dir = "" if rel_dir == "." else rel_dir
        kept_dirs = []
        for d in sorted(dirnames):
            rel = os.path.join(rel_dir, d)
            if _is_excluded(rel, patterns):
                logger.debug("sync: excluding %s", rel)
                continue
            s = Path(dirpath) / d
            t = dst / rel
            if s.is_symlink():
                _copy_symlink(s, t)
                copied.append(rel)
                continue
            t.mkdir(parents=True, exist_ok=True)
            shutil.copystat(str(s), str(t))
            copied.append(rel)
            kept_dirs.append(d)
        dirnames[:] = kept_dirs
        for f in sorted(filenames):
            rel = os.path.join(rel_dir, f)
            if _is_excluded(rel, patterns):
                logger.debug("sync: excluding %s", rel)
                continue
            s = Path(dirpath) / f
            t = dst / rel
            if s.is_symlink():
                _copy_symlink(s, t)
            else:
                t.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(str(s), str(t))
            copied.append(rel)

    if prune:
        _prune(dst, set(copied))
    return copied


def _copy_symlink(s: Path, t: Path) -> None:
    if t.is_symlink() or t.is_file():
        t.unlink()
    elif t.is_dir():
        shutil.rmtree(str(t))
    t.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(os.readlink(str(s)), str(t))


def _prune(dst: Path, keep: set) -> None:
    for dirpath, dirnames, filenames in os.walk(dst, topdown=False):
        rel_dir = os.path.relpath(dirpath, dst)
        rel_dir = "" if rel_dir == "." else rel_dir
        for name in filenames + dirnames:
            rel = os.path.join(rel_dir, name)
            if rel in keep:
                continue
            p = Path(dirpath) / name
            logger.debug("sync: removing stale %s", rel)
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(str(p))
            else:
                p.unlink()


def copy_extra_file(path: Union[str, Path], root_dir: Union[str, Path]) -> Path:
    """
    Copy an extra package file or directory under ``root_dir`` keeping its path.

    /path/to/foo.txt -> {root_dir}/path/to/foo.txt
    """
    p = Path(path)
    rel = str(p).lstrip("/")
    if p.is_dir():
        dest = Path(root_dir) / rel
        dest.mkdir(parents=True, exist_ok=True)
        sync(p, dest, prune=False)
        return dest
    dest_dir = Path(root_dir) / os.path.dirname(rel)
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest = dest_dir / p.name
    shutil.copy2(str(p), str(dest))
    return dest


# -------------------------
# Filesystem directory list
# -------------------------
@lru_cache(maxsize=None)
def filesystem_directories(path: Optional[str] = None) -> FrozenSet[str]:
    """Newline-delimited absolute paths; the packaged resource when ``path`` is None."""
    if path:
        text = Path(path).read_text(encoding="utf-8")
    else:
        text = (resources.files("solpack") / "resources" / "filesystem_list").read_text(encoding="utf-8")
    return frozenset(line.rstrip("\n") for line in text.splitlines() if line.strip())


def filter_file_list(lines: Iterable[str], fs_dirs: FrozenSet[str], log=None) -> List[str]:
    """
    Keep ``find . -print`` entries suitable for a Prototype, in order.

    An entry is dropped when it contains whitespace or when the entry minus its
    leading character ("./opt" -> "/opt") is a system directory.
    """
    log = log or logger
    kept: List[str] = []
    for line in lines:
        entry = line.rstrip("\n")
        if _WHITESPACE_RE.search(entry):
            log.warning("Skipping packaging '%s' file due to whitespace in filename", entry)
        elif entry[1:] in fs_dirs:
            log.info("Skipping packaging '%s' file as it is a filesystem directory", entry)
        else:
            kept.append(entry)
    return kept
