# solpack/modules/ips.py
# -*- coding: utf-8 -*-
"""
IPS (pkg(5)) package builder.

The package manifest is built in three generations: metadata rendered from
``gen.manifestfile``, contents from ``pkgsend generate`` (``.p5m.1``) mogrified
with the metadata (``.p5m.2``), and dependencies from ``pkgdepend``
(``.p5m.3`` resolved into ``.p5m.3.res``). The manifest is linted, then
published into a local file repository.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from solpack.modules.errors import StagingError
from solpack.modules.logging import get_logger
from solpack.modules.packager import Packager
from solpack.modules.pipeline import Stage
from solpack.modules.template import quote, render_template

logger = get_logger("ips")

DEFAULT_LINT_URL = "http://pkg.oracle.com/solaris/release"


class IPSPackager(Packager):
    id = "ips"

    def __init__(self, project, *, repo_dir: Union[str, Path], publisher: str,
                 lint_url: Optional[str] = None, **kwargs):
        super().__init__(project, **kwargs)
        self.repo_dir = Path(repo_dir)
        self.publisher = publisher
        self.lint_url = lint_url or self.config.get("ips.lint_url") or DEFAULT_LINT_URL

    def stages(self) -> List[Stage]:
        return [
            self._stage(
                "generate_pkg_manifest",
                self._stage("generate_metadata"),
                self._stage("generate_contents"),
                self._stage("generate_deps"),
                self._stage("check_manifest"),
            ),
            self._stage("create_repo"),
            self._stage("publish_pkg"),
        ]

    # --- naming ---
    @property
    def fmri_package_name(self) -> str:
        return self.descriptor.fmri

    def manifest_path(self, generation: str) -> Path:
        """``generation`` is "1", "2", "3" or "3.res"."""
        return self.staging_path(f"{self.safe_name}.p5m.{generation}")

    # --- stages ---
    def manifest_variables(self) -> Dict[str, Any]:
        return {
            "name": self.safe_name,
            "install_dir": self.project.install_dir,
            "fmri_package_name": self.fmri_package_name,
            "description": quote(self.project.description),
            "summary": quote(self.project.friendly_name),
            "arch": self.safe_architecture,
        }

    def generate_metadata(self):
        destination = self.staging_path("gen.manifestfile")
        rendered = render_template("gen.manifestfile", destination, self.manifest_variables(), resource=True)
        logger.debug("Rendered Template:\n%s", rendered)
        try:
            self.staging.mkdir("proto_install")
        except OSError as e:
            raise StagingError(f"cannot create proto_install: {e}") from e
        return {"manifestfile": str(destination)}

    def generate_contents(self):
        cwd = self.staging.root
        self.runner.pipe(
            [["pkgsend", "generate", self.project.install_dir], ["pkgfmt"]],
            cwd=cwd, stdout_path=self.manifest_path("1"),
        )
        self.runner.pipe(
            [["pkgmogrify", f"-DARCH={self.host.processor}", str(self.manifest_path("1")),
              str(self.staging_path("gen.manifestfile"))], ["pkgfmt"]],
            cwd=cwd, stdout_path=self.manifest_path("2"),
        )
        return {"manifest": str(self.manifest_path("2"))}

    def generate_deps(self):
        cwd = self.staging.root
        self.runner.pipe(
            [["pkgdepend", "generate", "-md", self.project.install_dir, str(self.manifest_path("2"))], ["pkgfmt"]],
            cwd=cwd, stdout_path=self.manifest_path("3"),
        )
        self.runner.run(["pkgdepend", "resolve", "-m", str(self.manifest_path("3"))], cwd=cwd)
        return {"manifest": str(self.manifest_path("3.res"))}

    def check_manifest(self):
        self.runner.run(
            ["pkglint", "-c", str(self.staging_path("lint-cache")), "-r", self.lint_url,
             str(self.manifest_path("3.res"))],
            cwd=self.staging.root,
        )
        return {"lint_url": self.lint_url}

    def create_repo(self):
        repo = str(self.repo_dir)
        self.repo_dir.parent.mkdir(parents=True, exist_ok=True)
        self.runner.run(["pkgrepo", "create", repo], cwd=self.staging.root)
        self.runner.run(
            ["pkgsend", "publish", "-s", repo, "-d", self.project.install_dir, str(self.manifest_path("3.res"))],
            cwd=self.staging.root,
        )
        return {"repo": repo, "fmri": self.fmri_package_name}

    def publish_pkg(self):
        self.runner.run(["pkgrepo", "add-publisher", "-s", str(self.repo_dir), self.publisher], cwd=self.staging.root)
        return {"publisher": self.publisher}

    def artifact(self) -> Dict[str, str]:
        return {"name": self.fmri_package_name, "path": str(self.repo_dir)}


def default_repo_dir(home: Optional[str] = None) -> Path:
    return Path(home or os.path.expanduser("~")) / "publish" / "repo"
