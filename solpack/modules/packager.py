# solpack/modules/packager.py
# -*- coding: utf-8 -*-
"""
packager.py - common machinery of the package builders

API:
  pk = SolarisPackager(project, output_dir="pkg")
  result = pk.build()          # PipelineResult; result.artifact on success

A packager owns one staging area per build. Stage methods take no arguments
and work against ``self.staging``. The descriptor is derived from the project
and host at the start of each build and dropped when the build ends.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Union

from solpack.modules.config import Config, get_config
from solpack.modules.errors import StagingError
from solpack.modules.hostinfo import HostInfo, detect
from solpack.modules.logging import get_logger
from solpack.modules.normalize import FMRI_TIMESTAMP, PackageDescriptor, describe
from solpack.modules.pipeline import Pipeline, PipelineResult, Stage
from solpack.modules.project import Project
from solpack.modules.shell import CommandRunner
from solpack.modules.staging import StagingArea

logger = get_logger("packager")


class Packager:
    id = "base"

    def __init__(self, project: Project, *, host: Optional[HostInfo] = None,
                 runner: Optional[CommandRunner] = None,
                 output_dir: Optional[Union[str, Path]] = None,
                 staging_root: Optional[Union[str, Path]] = None,
                 staging_dir: Optional[Union[str, Path]] = None,
                 keep_staging: Optional[bool] = None,
                 keep_staging_on_error: Optional[bool] = None,
                 config: Optional[Config] = None):
        self.project = project
        self.config = config or get_config()
        self.host = host or detect()
        build_cfg = self.config.section("build")
        self.runner = runner or CommandRunner(timeout=build_cfg.get("command_timeout") or None)
        self.output_dir = Path(output_dir or build_cfg.get("output_dir") or "pkg")
        self.staging_root = staging_root or build_cfg.get("staging_root")
        self.staging_dir = staging_dir
        self.keep_staging = build_cfg.get("keep_staging", False) if keep_staging is None else keep_staging
        self.keep_staging_on_error = (build_cfg.get("keep_staging_on_error", True)
                                      if keep_staging_on_error is None else keep_staging_on_error)
        self.staging: Optional[StagingArea] = None
        self._descriptor: Optional[PackageDescriptor] = None
        self._built = False

    # --- identity ---
    @property
    def fmri_timestamp(self) -> str:
        return self.config.get("ips.fmri_timestamp") or FMRI_TIMESTAMP

    @property
    def descriptor(self) -> PackageDescriptor:
        if self._descriptor is not None:
            return self._descriptor
        return describe(self.project, self.host, self.id, self.fmri_timestamp)

    @property
    def safe_name(self) -> str:
        return self.descriptor.safe_name

    @property
    def safe_architecture(self) -> str:
        return self.descriptor.architecture

    def staging_path(self, *parts: str) -> Path:
        if self.staging is None:
            raise StagingError("staging area not created; call build() first")
        return self.staging.path(*parts)

    # --- to implement ---
    def stages(self) -> List[Stage]:
        raise NotImplementedError

    def artifact(self) -> Any:
        return None

    def _stage(self, name: str, *children: Stage) -> Stage:
        if children:
            return Stage(name, children=list(children))
        return Stage(name, getattr(type(self), name))

    # --- driver ---
    def _create_staging(self) -> StagingArea:
        if self._built:
            raise StagingError(f"{self.id} packager already ran; staging areas are single-use")
        self._built = True
        if self.staging_dir:
            return StagingArea.at(self.staging_dir)
        return StagingArea.create(f"{self.id}-{self.safe_name}", parent=self.staging_root)

    def build(self) -> PipelineResult:
        self._descriptor = describe(self.project, self.host, self.id, self.fmri_timestamp)
        try:
            self.staging = self._create_staging()
        except Exception:
            self._descriptor = None
            raise
        logger.info("%s: building %s %s-%s in %s", self.id, self.safe_name, self.project.build_version,
                    self.project.build_iteration, self.staging.root)
        ok = False
        try:
            result = Pipeline(self.id, self.stages()).run(self)
            if result.ok:
                result.artifact = self.artifact()
                ok = True
            return result
        finally:
            self._cleanup(ok)
            self._descriptor = None

    def _cleanup(self, ok: bool) -> None:
        if ok and not self.keep_staging:
            self.staging.destroy()
        elif not ok and not self.keep_staging_on_error:
            self.staging.destroy()
        else:
            logger.info("%s: keeping staging area %s", self.id, self.staging.root)
