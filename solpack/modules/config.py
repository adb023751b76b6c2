# solpack/modules/config.py
# -*- coding: utf-8 -*-
"""
solpack central configuration loader

Features:
- Read YAML/JSON config from multiple locations (explicit path, env override, cwd, user, system)
- Merge with authoritative DEFAULTS, expand path fields, coerce numeric fields
- Validate structure with a pydantic schema, warn or raise (fatal optional)
- Dot-path access via Config.get(); process-wide instance via get_config()
- Thread-safe load/reload
"""

from __future__ import annotations

import os
import json
import logging
import threading
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from solpack.modules.errors import ValidationError

logger = logging.getLogger("solpack.config")

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "file": None,
        "file_level": "DEBUG",
        "color": True,
        "max_size": "10M",  # human readable
        "backups": 5,
        "module_levels": {},
        "jsonl": {"enabled": False, "path": "~/.solpack/log.jsonl", "level": "INFO"},
    },
    "build": {
        "staging_root": None,  # None -> system temp dir
        "output_dir": "./pkg",
        "command_timeout": 3600,
        "keep_staging": False,
        "keep_staging_on_error": True,
    },
    "solaris": {
        "filesystem_list": None,  # None -> packaged resource
    },
    "ips": {
        "lint_url": "http://pkg.oracle.com/solaris/release",
        "repo_dir": None,  # None -> $HOME/publish/repo
        "publisher": None,  # None -> $LOGNAME
        "fmri_timestamp": "20160226T100948Z",
    },
    "publish": {
        "packagecloud": {
            "user": None,
            "token": None,
            "distros": "",
            "repo": None,
            "endpoint": "https://packagecloud.io",
            "timeout": 300,
        },
    },
}


# ----------------------------
# Schema
# ----------------------------
class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _JsonlSection(_Section):
    enabled: bool = False
    path: Optional[str] = None
    level: str = "INFO"


class _LoggingSection(_Section):
    level: str = "INFO"
    file: Optional[str] = None
    file_level: str = "DEBUG"
    color: bool = True
    max_size: Any = "10M"
    max_size_bytes: Optional[int] = None
    backups: int = 5
    module_levels: Dict[str, str] = {}
    jsonl: _JsonlSection = _JsonlSection()


class _BuildSection(_Section):
    staging_root: Optional[str] = None
    output_dir: str = "./pkg"
    command_timeout: Optional[int] = None
    keep_staging: bool = False
    keep_staging_on_error: bool = True


class _SolarisSection(_Section):
    filesystem_list: Optional[str] = None


class _IpsSection(_Section):
    lint_url: str
    repo_dir: Optional[str] = None
    publisher: Optional[str] = None
    fmri_timestamp: str


class _PackagecloudSection(_Section):
    user: Optional[str] = None
    token: Optional[str] = None
    distros: str = ""
    repo: Optional[str] = None
    endpoint: str = "https://packagecloud.io"
    timeout: int = 300


class _PublishSection(_Section):
    packagecloud: _PackagecloudSection = _PackagecloudSection()


class ConfigSchema(_Section):
    logging: _LoggingSection
    build: _BuildSection
    solaris: _SolarisSection
    ips: _IpsSection
    publish: _PublishSection


# ----------------------------
# Dataclass to hold config
# ----------------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # values loaded from file (if any)
    merged: Dict[str, Any] = field(default_factory=dict)  # merged with DEFAULTS
    path: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """Dot-separated getter for merged config."""
        parts = path.split(".") if path else []
        cur: Any = self.merged
        for p in parts:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur

    def section(self, name: str) -> Dict[str, Any]:
        val = self.get(name)
        return deepcopy(val) if isinstance(val, dict) else {}

    def as_dict(self) -> Dict[str, Any]:
        return deepcopy(self.merged)


# ----------------------------
# Module state
# ----------------------------
_CONFIG: Optional[Config] = None
_CONFIG_LOCK = threading.RLock()


# ----------------------------
# Utilities
# ----------------------------
def human_size_to_bytes(val: Any) -> Optional[int]:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    s = str(val).strip().upper()
    units = {"KB": 1024, "K": 1024, "MB": 1024**2, "M": 1024**2, "GB": 1024**3, "G": 1024**3, "T": 1024**4}
    try:
        for suffix, mul in units.items():
            if s.endswith(suffix):
                num = float(s[: -len(suffix)].strip())
                return int(num * mul)
        return int(float(s))
    except ValueError:
        logger.warning("config: cannot parse human size '%s'", val)
        return None


def expand_path(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    return os.path.abspath(os.path.expanduser(os.path.expandvars(str(val))))


def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    res = deepcopy(a)
    for k, v in b.items():
        if k in res and isinstance(res[k], dict) and isinstance(v, dict):
            res[k] = _deep_merge(res[k], v)
        else:
            res[k] = deepcopy(v)
    return res


def _find_candidates(explicit: Optional[str] = None) -> List[Path]:
    candidates: List[Path] = []
    env = os.environ.get("SOLPACK_CONFIG")
    if explicit:
        candidates.append(Path(explicit))
    if env:
        candidates.append(Path(env))
    candidates.extend([
        Path.cwd() / "solpack.yaml",
        Path.cwd() / "solpack.yml",
        Path.cwd() / "solpack.json",
        Path.home() / ".config" / "solpack" / "config.yaml",
        Path("/etc") / "solpack" / "config.yaml",
    ])
    return candidates


def _find_path(explicit: Optional[str] = None) -> Optional[Path]:
    if explicit and not Path(explicit).exists():
        raise ValidationError(f"config file not found: {explicit}")
    for p in _find_candidates(explicit):
        if p.exists():
            return p
    return None


def load_file(path: Path) -> Dict[str, Any]:
    """Parse a YAML or JSON document into a dict."""
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"cannot read {path}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(txt)
        else:
            data = yaml.safe_load(txt)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValidationError(f"cannot parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: top level must be a mapping")
    return data


def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Expand path fields and convert human sizes."""
    out = deepcopy(cfg)
    path_keys = [
        ("logging", "file"),
        ("build", "staging_root"),
        ("build", "output_dir"),
        ("solaris", "filesystem_list"),
        ("ips", "repo_dir"),
    ]
    for section, key in path_keys:
        ref = out.get(section)
        if isinstance(ref, dict) and isinstance(ref.get(key), str) and ref[key]:
            ref[key] = expand_path(ref[key])
    jsonl = out.get("logging", {}).get("jsonl")
    if isinstance(jsonl, dict) and isinstance(jsonl.get("path"), str):
        jsonl["path"] = expand_path(jsonl["path"])

    if isinstance(out.get("logging"), dict) and "max_size" in out["logging"]:
        ms = human_size_to_bytes(out["logging"]["max_size"])
        if ms is not None:
            out["logging"]["max_size_bytes"] = ms

    build = out.get("build")
    if isinstance(build, dict) and build.get("command_timeout") is not None:
        try:
            build["command_timeout"] = int(build["command_timeout"])
        except (TypeError, ValueError):
            logger.debug("config: cannot coerce build.command_timeout=%r", build["command_timeout"])
    return out


def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Return (ok, issues_list)."""
    try:
        ConfigSchema.model_validate(cfg)
    except PydanticValidationError as e:
        issues = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            issues.append(f"{loc}: {err.get('msg')}")
        return False, issues
    return True, []


# ----------------------------
# Loading / reloading
# ----------------------------
def load(explicit_path: Optional[str] = None, fatal: bool = False) -> Config:
    """
    Load and merge config. If fatal=True then validation failures raise ValidationError.
    Returns Config object.
    """
    global _CONFIG
    with _CONFIG_LOCK:
        cfg_path = _find_path(explicit_path)
        raw: Dict[str, Any] = load_file(cfg_path) if cfg_path else {}
        merged = _deep_merge(DEFAULTS, raw)
        normalized = _normalize_and_coerce(merged)
        ok, issues = _validate_structure(normalized)
        if not ok:
            msg = f"config: validation issues: {issues}"
            if fatal:
                raise ValidationError(msg)
            logger.warning(msg)
        cfg_obj = Config(raw=raw, merged=normalized, path=cfg_path)
        _CONFIG = cfg_obj
        logger.debug("config: loaded merged config (from=%s)", str(cfg_path) if cfg_path else "<defaults>")
        return cfg_obj


def get_config() -> Config:
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None:
            _CONFIG = load()
        return _CONFIG


def reload(explicit_path: Optional[str] = None) -> Config:
    return load(explicit_path)


def reset() -> None:
    global _CONFIG
    with _CONFIG_LOCK:
        _CONFIG = None


def validate_config(cfg: Optional[Config] = None) -> Tuple[bool, List[str]]:
    cfg = cfg or get_config()
    ok, issues = _validate_structure(cfg.merged)
    out_dir = cfg.get("build.output_dir")
    if out_dir:
        parent = Path(out_dir)
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        if not os.access(parent, os.W_OK):
            issues.append(f"build.output_dir {out_dir} not writable")
    return (len(issues) == 0, issues)
