import datetime
import os
import shutil
import sys

import pytest

from solpack.modules.artifact import Package
from solpack.modules.errors import ExternalToolFailure, StagingError
from solpack.modules.project import project_from_dict
from solpack.modules.shell import CommandRunner
from solpack.modules.solaris import PROTOTYPE_HEADER, SolarisPackager, pkginfo_value
from tests.conftest import FakeRunner

FIND_OUTPUT = ".\n./opt\n./opt/app\n./opt/app/bin\n./opt/app/my file\n"


def _make_project(install_tree, scripts_dir=None, **extra):
    data = {
        "name": "App Suite",
        "build_version": "1.2.3",
        "install_dir": str(install_tree),
        "description": "The application suite",
        "maintainer": "ops@example.com",
        "exclusions": ["cache"],
    }
    if scripts_dir is not None:
        data["package_scripts_path"] = str(scripts_dir)
    data.update(extra)
    return project_from_dict(data)


def _make_runner(**fail):
    return FakeRunner(
        outputs={
            "find": FIND_OUTPUT,
            "pkgproto": "d none /opt/app 0755 builder staff\n",
            "awk": "d none /opt/app 0755 root root\n",
        },
        fail=fail,
    )


def test_build_produces_package_and_metadata(install_tree, scripts_dir, intel_host, config):
    runner = _make_runner()
    packager = SolarisPackager(_make_project(install_tree, scripts_dir), host=intel_host, runner=runner, config=config)
    result = packager.build()

    assert result.ok, result.to_dict()
    assert result.executed == [
        "write_scripts", "copy_files", "write_prototype_file", "write_pkginfo_file", "create_package_file",
    ]
    assert runner.programs == ["find", "pkgproto", "awk", "pkgmk", "pkgchk", "pkgtrans"]

    artifact = result.artifact
    assert isinstance(artifact, Package)
    assert artifact.name == "app-suite-1.2.3-1.i386.solaris"
    artifact.validate()
    meta = artifact.metadata
    assert meta["name"] == "app-suite"
    assert meta["arch"] == "i386"
    assert meta["platform"] == "solaris"

    # success removes the staging area
    assert not packager.staging.root.exists()


def test_staging_contents(install_tree, scripts_dir, intel_host, config):
    runner = _make_runner()
    packager = SolarisPackager(
        _make_project(install_tree, scripts_dir), host=intel_host, runner=runner, config=config, keep_staging=True
    )
    assert packager.build().ok
    stage = packager.staging.root

    assert (stage / "postinstall").read_text(encoding="utf-8") == "#!/bin/sh\necho installed\n"
    assert (stage / "postremove").exists()

    copied = stage / "root" / str(install_tree).lstrip("/")
    assert (copied / "bin" / "app").exists()
    assert not (copied / "cache").exists()

    assert (stage / "files").read_text(encoding="utf-8") == FIND_OUTPUT
    assert (stage / "files.clean").read_text(encoding="utf-8") == ".\n./opt/app\n./opt/app/bin\n"
    assert (stage / "Prototype").read_text(encoding="utf-8") == PROTOTYPE_HEADER + "d none /opt/app 0755 root root\n"

    pkginfo = (stage / "pkginfo").read_text(encoding="utf-8")
    assert "PKG=app-suite\n" in pkginfo
    assert "ARCH=i386\n" in pkginfo
    assert "VERSION=1.2.3-1\n" in pkginfo
    assert "BASEDIR=/\n" in pkginfo

    pkgmk, pkgchk, pkgtrans = runner.calls[-3:]
    root = str(stage / "root")
    assert pkgmk == ["pkgmk", "-o", "-r", "/", "-d", root, "-f", str(stage / "Prototype")]
    assert pkgchk == ["pkgchk", "-vd", root, "app-suite"]
    assert pkgtrans[:2] == ["pkgtrans", root] and pkgtrans[3] == "app-suite"
    assert pkgtrans[2].endswith("app-suite-1.2.3-1.i386.solaris")


def test_failing_tool_aborts_and_keeps_staging(install_tree, intel_host, config):
    runner = _make_runner(pkgchk=1)
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=runner, config=config)
    result = packager.build()

    assert not result.ok
    assert result.stage == "create_package_file"
    assert runner.programs[-1] == "pkgchk"
    assert "pkgtrans" not in runner.programs
    assert result.artifact is None
    assert isinstance(result.error, ExternalToolFailure)
    assert result.stages[-1].detail["argv"][0] == "pkgchk"
    assert packager.staging.root.exists()
    assert not (packager.output_dir / "app-suite-1.2.3-1.i386.solaris").exists()


def test_missing_scripts_are_skipped(install_tree, intel_host, config):
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=_make_runner(), config=config,
                               keep_staging=True)
    result = packager.build()
    assert result.stages[0].detail == {"scripts": []}


def test_sparc_package_name(install_tree, sparc_host, config):
    packager = SolarisPackager(_make_project(install_tree, build_iteration=3), host=sparc_host,
                               runner=_make_runner(), config=config)
    assert packager.package_name == "app-suite-1.2.3-3.sparc.solaris"


def test_pkginfo_content(install_tree, intel_host, config):
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=_make_runner(), config=config)
    now = datetime.datetime(2016, 2, 26, 10, 9, 48, tzinfo=datetime.timezone.utc)
    lines = packager.pkginfo_content(now).splitlines()
    assert lines[0] == "CLASSES=none"
    assert "NAME=app-suite" in lines
    assert "DESC=The application suite" in lines
    assert "VENDOR=ops@example.com" in lines
    assert lines[-1] == "PSTAMP=buildhost2016-02-26T10:09:48Z"


def test_packager_is_single_use(install_tree, intel_host, config):
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=_make_runner(), config=config)
    assert packager.build().ok
    with pytest.raises(StagingError):
        packager.build()


def test_explicit_staging_dir_must_be_fresh(install_tree, intel_host, config, tmp_path):
    used = tmp_path / "used"
    used.mkdir()
    (used / "Prototype").write_text("leftover", encoding="utf-8")
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=_make_runner(), config=config,
                               staging_dir=used)
    with pytest.raises(StagingError):
        packager.build()


def test_staging_path_before_build(install_tree, intel_host, config):
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=_make_runner(), config=config)
    with pytest.raises(StagingError):
        packager.staging_path("Prototype")


def test_pkginfo_values_stay_on_one_line(install_tree, intel_host, config):
    project = _make_project(install_tree, description="The app.\nBASEDIR=/tmp\n",
                            maintainer="Ops Team\r\n<ops@example.com>")
    packager = SolarisPackager(project, host=intel_host, runner=_make_runner(), config=config)
    lines = packager.pkginfo_content().splitlines()
    assert len(lines) == 13
    assert "DESC=The app. BASEDIR=/tmp" in lines
    assert [line for line in lines if line.startswith("BASEDIR=")] == ["BASEDIR=/"]
    assert "VENDOR=Ops Team <ops@example.com>" in lines


@pytest.mark.parametrize("value,expected", [("one line", "one line"), ("a\n\nb", "a b"), ("  tail\n", "tail"), (7, "7")])
def test_pkginfo_value(value, expected):
    assert pkginfo_value(value) == expected


@pytest.mark.skipif(not sys.platform.startswith("linux") or shutil.which("find") is None
                    or shutil.which("pkgproto") is not None,
                    reason="needs byte file names, find(1) and no pkgproto")
def test_undecodable_file_name_reaches_the_file_list(install_tree, intel_host, config):
    with open(os.fsencode(str(install_tree)) + b"/caf\xe9", "wb") as fh:
        fh.write(b"data")
    packager = SolarisPackager(_make_project(install_tree), host=intel_host, runner=CommandRunner(), config=config)
    result = packager.build()

    # find and the file list succeed; the missing pkgproto is the first failure
    assert result.stage == "write_prototype_file"
    assert isinstance(result.error, ExternalToolFailure)
    assert result.error.argv[0] == "pkgproto"
    files_clean = (packager.staging.root / "files.clean").read_bytes()
    assert b"/caf\xe9\n" in files_clean
