# solpack/modules/solaris.py
# -*- coding: utf-8 -*-
"""
SVR4 (pkgadd) package builder.

Stages: write_scripts -> copy_files -> write_prototype_file -> write_pkginfo_file
-> create_package_file. The result is a datastream file named
``{name}-{version}-{iteration}.{arch}.solaris`` plus its metadata sidecar.
"""

from __future__ import annotations

import datetime
import re
from pathlib import Path
from typing import Dict, List

from solpack.modules.artifact import Package, write_metadata
from solpack.modules.errors import StagingError, ValidationError
from solpack.modules.filesync import copy_extra_file, filesystem_directories, filter_file_list, sync
from solpack.modules.logging import get_logger
from solpack.modules.normalize import pkgmk_version
from solpack.modules.packager import Packager
from solpack.modules.pipeline import Stage
from solpack.modules.shell import ENCODING, ENCODING_ERRORS

logger = get_logger("solaris")

# source script name -> control file name
SCRIPT_MAP: Dict[str, str] = {
    "postinst": "postinstall",
    "postrm": "postremove",
    "postinstall": "postinstall",
    "postremove": "postremove",
}

PROTOTYPE_HEADER = "i pkginfo\ni postinstall\ni postremove\n"
OWNER_REWRITE_AWK = '{ $5 = "root"; $6 = "root"; print }'

_LINE_BREAK_RE = re.compile(r"\s*[\r\n]+\s*")


def pkginfo_value(value) -> str:
    """pkginfo is one ``KEY=value`` per line; line breaks in a value become spaces."""
    return _LINE_BREAK_RE.sub(" ", str(value)).strip()


class SolarisPackager(Packager):
    id = "solaris"

    def stages(self) -> List[Stage]:
        return [
            self._stage("write_scripts"),
            self._stage("copy_files"),
            self._stage("write_prototype_file"),
            self._stage("write_pkginfo_file"),
            self._stage("create_package_file"),
        ]

    # --- naming ---
    @property
    def pkgmk_version(self) -> str:
        return pkgmk_version(self.project.build_version, self.project.build_iteration)

    @property
    def package_name(self) -> str:
        return f"{self.safe_name}-{self.pkgmk_version}.{self.safe_architecture}.solaris"

    @property
    def package_path(self) -> Path:
        return self.output_dir / self.package_name

    @property
    def root_dir(self) -> Path:
        return self.staging_path("root")

    def filesystem_directories(self):
        return filesystem_directories(self.config.get("solaris.filesystem_list"))

    # --- stages ---
    def write_scripts(self):
        """Copy maintainer scripts into the staging area under their Solaris names."""
        written = []
        scripts_path = self.project.package_scripts_path
        if not scripts_path:
            return {"scripts": written}
        for source, destination in SCRIPT_MAP.items():
            source_path = Path(scripts_path) / source
            if not source_path.is_file():
                continue
            dest = self.staging.copy_file(source_path, destination)
            logger.debug("Adding script `%s' to `%s'", source, dest)
            written.append(destination)
        return {"scripts": written}

    def copy_files(self):
        # /opt/hamlet => {staging}/root/opt/hamlet
        destination = self.root_dir / self.project.install_dir.lstrip("/")
        extras = []
        try:
            copied = sync(self.project.install_dir, destination, exclude=self.project.exclusions)
            for extra in self.project.extra_package_files:
                extras.append(str(copy_extra_file(extra, self.root_dir)))
        except OSError as e:
            raise StagingError(f"cannot copy files into {self.root_dir}: {e}") from e
        return {"copied": len(copied), "extra": extras}

    def write_prototype_file(self):
        files = self.staging_path("files")
        files_clean = self.staging_path("files.clean")
        prototype = self.staging_path("Prototype")
        prototype_files = self.staging_path("Prototype.files")

        self.runner.run(["find", ".", "-print"], cwd=self.root_dir, stdout_path=files)

        lines = files.read_text(encoding=ENCODING, errors=ENCODING_ERRORS).splitlines()
        kept = filter_file_list(lines, self.filesystem_directories(), log=logger)
        files_clean.write_text("".join(f"{entry}\n" for entry in kept), encoding=ENCODING, errors=ENCODING_ERRORS)

        # control files first, then the file list with owner and group forced to root
        prototype.write_text(PROTOTYPE_HEADER, encoding="utf-8")
        self.runner.run(["pkgproto"], cwd=self.root_dir, stdin_path=files_clean, stdout_path=prototype_files)
        self.runner.run(["awk", OWNER_REWRITE_AWK], cwd=self.staging.root, stdin_path=prototype_files,
                        stdout_path=prototype, append=True)
        return {"entries": len(kept), "skipped": len(lines) - len(kept)}

    def pkginfo_content(self, now: datetime.datetime = None) -> str:
        # http://docs.oracle.com/cd/E19683-01/816-0219/6m6njqbat/index.html
        now = now or datetime.datetime.now(datetime.timezone.utc)
        pstamp = now.strftime("%Y-%m-%dT%H:%M:%SZ")
        fields = [
            ("CLASSES", "none"),
            ("TZ", "PST"),
            ("PATH", "/sbin:/usr/sbin:/usr/bin:/usr/sadm/install/bin"),
            ("BASEDIR", "/"),
            ("PKG", self.safe_name),
            ("NAME", self.safe_name),
            ("ARCH", self.safe_architecture),
            ("VERSION", self.pkgmk_version),
            ("CATEGORY", "application"),
            ("DESC", self.project.description),
            ("VENDOR", self.project.maintainer),
            ("EMAIL", self.project.maintainer),
            ("PSTAMP", f"{self.host.hostname}{pstamp}"),
        ]
        return "".join(f"{k}={pkginfo_value(v)}\n" for k, v in fields)

    def write_pkginfo_file(self):
        path = self.staging.write_text("pkginfo", self.pkginfo_content())
        return {"pkginfo": str(path)}

    def create_package_file(self):
        root = str(self.root_dir)
        name = self.safe_name
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.runner.run(["pkgmk", "-o", "-r", "/", "-d", root, "-f", str(self.staging_path("Prototype"))],
                        cwd=self.staging.root)
        self.runner.run(["pkgchk", "-vd", root, name], cwd=self.staging.root)
        self.runner.run(["pkgtrans", root, str(self.package_path.resolve()), name], cwd=self.staging.root)
        if not self.package_path.is_file():
            raise ValidationError(f"pkgtrans did not produce {self.package_path}")
        return {"package": str(self.package_path)}

    def artifact(self) -> Package:
        package = Package(self.package_path)
        write_metadata(
            package,
            name=self.safe_name,
            friendly_name=self.project.friendly_name,
            version=self.project.build_version,
            iteration=self.project.build_iteration,
            arch=self.safe_architecture,
            platform="solaris",
        )
        return package
