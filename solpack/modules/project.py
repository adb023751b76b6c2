# solpack/modules/project.py
# -*- coding: utf-8 -*-
"""
Project metadata: the read-only description of the software being packaged.

A project file is YAML (or JSON) with the fields of :class:`Project`, e.g.::

    name: App Suite
    build_version: 1.2.3
    build_iteration: 1
    install_dir: /opt/app
    description: The application suite
    maintainer: ops@example.com
    package_scripts_path: ./package-scripts/app
    exclusions: ["**/.git", "*.pyc"]
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from solpack.modules.config import load_file
from solpack.modules.errors import ValidationError


class Project(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    package_name: Optional[str] = None
    friendly_name: Optional[str] = None
    build_version: str
    build_iteration: str = "1"
    install_dir: str
    description: str = ""
    maintainer: str = ""
    package_scripts_path: Optional[str] = None
    extra_package_files: List[str] = []
    exclusions: List[str] = []

    @field_validator("build_version", "build_iteration", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("name", "build_version")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("install_dir")
    @classmethod
    def _absolute(cls, v: str) -> str:
        if not os.path.isabs(v):
            raise ValueError(f"install_dir must be absolute, got {v!r}")
        return os.path.normpath(v)

    @model_validator(mode="before")
    @classmethod
    def _defaults(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("name"):
            data = dict(data)
            data["package_name"] = data.get("package_name") or data["name"]
            data["friendly_name"] = data.get("friendly_name") or data["name"]
        return data


def project_from_dict(data: Dict[str, Any], base_dir: Optional[Path] = None) -> Project:
    data = dict(data)
    scripts = data.get("package_scripts_path")
    if scripts and base_dir is not None and not os.path.isabs(scripts):
        data["package_scripts_path"] = str((base_dir / scripts).resolve())
    try:
        return Project.model_validate(data)
    except PydanticValidationError as e:
        issues = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ValidationError(f"invalid project: {issues}") from e


def load_project(path: str) -> Project:
    """Load a project file; relative script paths resolve against the file's directory."""
    p = Path(path)
    if not p.exists():
        raise ValidationError(f"project file not found: {path}")
    return project_from_dict(load_file(p), base_dir=p.parent)
