# solpack/modules/logging.py
# -*- coding: utf-8 -*-
"""
solpack logging

Features:
 - Configuration from solpack.modules.config (``logging`` section), re-appliable
 - Console color formatter
 - Rotating file handler
 - JSONL log with one object per record
 - Module-level configurable log levels (module_levels)
 - Thread-safe reconfiguration and per-level counters
"""

from __future__ import annotations

import sys
import json
import time
import logging
import logging.handlers
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from solpack.modules.config import get_config, human_size_to_bytes

_logger = logging.getLogger("solpack.logging")

MODULE_ATTR = "solpack_module"


# ----------------------
# Color formatter
# ----------------------
class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[37m",    # light gray
        logging.INFO: "\033[36m",     # cyan
        logging.WARNING: "\033[33m",  # yellow
        logging.ERROR: "\033[31m",    # red
        logging.CRITICAL: "\033[41;37m",  # white on red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        if not hasattr(record, MODULE_ATTR):
            setattr(record, MODULE_ATTR, record.name)
        msg = super().format(record)
        if self.color:
            color = self.COLORS.get(record.levelno, "")
            return f"{color}{msg}{self.RESET}"
        return msg


# ----------------------
# JSONL formatter
# ----------------------
class JSONLineFormatter(logging.Formatter):
    def format(self, record):
        obj = {
            "timestamp": time.time(),
            "level": record.levelname,
            "module": getattr(record, MODULE_ATTR, record.name),
            "message": record.getMessage(),
        }
        stage = getattr(record, "stage", None)
        if stage:
            obj["stage"] = stage
        if record.exc_info:
            obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False)


class _PlainFormatter(logging.Formatter):
    def format(self, record):
        if not hasattr(record, MODULE_ATTR):
            setattr(record, MODULE_ATTR, record.name)
        return super().format(record)


class ModuleAdapter(logging.LoggerAdapter):
    """Injects the module name and keeps per-call ``extra`` such as ``stage``."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


# ----------------------
# Module-level filter for per-module levels
# ----------------------
class ModuleLevelFilter(logging.Filter):
    def __init__(self, module_levels: Optional[Dict[str, str]] = None):
        super().__init__()
        self.module_levels = {m: getattr(logging, str(lvl).upper(), logging.INFO) for m, lvl in (module_levels or {}).items()}

    def filter(self, record):
        mod = getattr(record, MODULE_ATTR, None)
        if mod and mod in self.module_levels:
            return record.levelno >= self.module_levels[mod]
        return True


# ----------------------
# SolpackLogger (singleton)
# ----------------------
class SolpackLogger:
    _instance = None
    _singleton_lock = threading.Lock()

    def __new__(cls):
        with cls._singleton_lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._inited = False
        return cls._instance

    def __init__(self):
        if self._inited:
            return
        self._lock = threading.RLock()
        self._root = logging.getLogger("solpack")
        self._handlers: List[logging.Handler] = []
        self._module_filter: Optional[ModuleLevelFilter] = None
        self._metrics: Dict[str, int] = {lvl: 0 for lvl in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")}
        self._root.addFilter(self._count_levels_filter)
        self._inited = True

    def _count_levels_filter(self, record):
        name = record.levelname
        if name in self._metrics:
            self._metrics[name] += 1
        return True

    # ----------------------
    # Configuration
    # ----------------------
    def configure(self, cfg: Optional[Dict[str, Any]] = None, level: Optional[str] = None, stream=None):
        """Apply the ``logging`` config section; ``level`` overrides the console level."""
        if cfg is None:
            cfg = get_config().section("logging")
        with self._lock:
            for h in list(self._handlers):
                self._root.removeHandler(h)
                h.close()
            self._handlers.clear()
            if self._module_filter is not None:
                self._root.removeFilter(self._module_filter)

            self._module_filter = ModuleLevelFilter(cfg.get("module_levels") or {})
            self._root.addFilter(self._module_filter)

            console_level = getattr(logging, str(level or cfg.get("level", "INFO")).upper(), logging.INFO)
            fmt = cfg.get("format") or "[%(asctime)s] [%(levelname)s] [%(solpack_module)s] %(message)s"
            datefmt = cfg.get("datefmt", "%H:%M:%S")

            ch = logging.StreamHandler(stream or sys.stderr)
            ch.setLevel(console_level)
            ch.setFormatter(ColorFormatter(fmt, datefmt=datefmt, color=bool(cfg.get("color", True))))
            self._root.addHandler(ch)
            self._handlers.append(ch)
            lowest = console_level

            if cfg.get("file"):
                file_path = Path(cfg["file"]).expanduser()
                file_path.parent.mkdir(parents=True, exist_ok=True)
                max_bytes = cfg.get("max_size_bytes") or human_size_to_bytes(cfg.get("max_size", "10M"))
                fh = logging.handlers.RotatingFileHandler(
                    str(file_path),
                    maxBytes=max_bytes or 10 * 1024 * 1024,
                    backupCount=int(cfg.get("backups", 5)),
                    encoding="utf-8",
                )
                file_level = getattr(logging, str(cfg.get("file_level", "DEBUG")).upper(), logging.DEBUG)
                fh.setLevel(file_level)
                fh.setFormatter(_PlainFormatter("%(asctime)s %(levelname)s [%(solpack_module)s] %(message)s"))
                self._root.addHandler(fh)
                self._handlers.append(fh)
                lowest = min(lowest, file_level)

            jsonl_cfg = cfg.get("jsonl") or {}
            if jsonl_cfg.get("enabled"):
                path = Path(jsonl_cfg.get("path") or "~/.solpack/log.jsonl").expanduser()
                path.parent.mkdir(parents=True, exist_ok=True)
                jh = logging.FileHandler(str(path), encoding="utf-8")
                jsonl_level = getattr(logging, str(jsonl_cfg.get("level", "INFO")).upper(), logging.INFO)
                jh.setLevel(jsonl_level)
                jh.setFormatter(JSONLineFormatter())
                self._root.addHandler(jh)
                self._handlers.append(jh)
                lowest = min(lowest, jsonl_level)

            self._root.setLevel(lowest)
            _logger.debug("logging: configuration applied")

    # ----------------------
    # Public API
    # ----------------------
    def get_logger(self, module_name: str) -> logging.LoggerAdapter:
        """Return a LoggerAdapter that injects 'solpack_module' into records."""
        base = logging.getLogger("solpack")
        return ModuleAdapter(base, {MODULE_ATTR: module_name})

    def get_metrics(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._metrics)


# ----------------------
# Public factory
# ----------------------
_GLOBAL_LOGGER = SolpackLogger()


def get_logger(module: str) -> logging.LoggerAdapter:
    return _GLOBAL_LOGGER.get_logger(module)


def configure(cfg: Optional[Dict[str, Any]] = None, level: Optional[str] = None, stream=None):
    return _GLOBAL_LOGGER.configure(cfg, level=level, stream=stream)


def get_metrics() -> Dict[str, int]:
    return _GLOBAL_LOGGER.get_metrics()
