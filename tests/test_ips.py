from solpack.modules.ips import IPSPackager, default_repo_dir
from solpack.modules.project import project_from_dict
from tests.conftest import FakeRunner

FMRI = "app-suite@2.3,2.3-1:20160226T100948Z"


def _make_packager(tmp_path, host, config, runner, **kwargs):
    project = project_from_dict(
        {
            "name": "App Suite",
            "build_version": "1.2.3",
            "install_dir": "/opt/app",
            "description": 'The "app" suite',
            "maintainer": "ops@example.com",
        }
    )
    return IPSPackager(project, repo_dir=tmp_path / "publish" / "repo", publisher="ops", host=host,
                       runner=runner, config=config, **kwargs)


def test_build_runs_tools_in_order(tmp_path, intel_host, config):
    runner = FakeRunner(outputs={"pkgfmt": "set name=pkg.fmri\n"})
    packager = _make_packager(tmp_path, intel_host, config, runner)
    result = packager.build()

    assert result.ok, result.to_dict()
    assert result.executed == [
        "generate_metadata", "generate_contents", "generate_deps", "check_manifest",
        "generate_pkg_manifest", "create_repo", "publish_pkg",
    ]
    assert runner.programs == [
        "pkgsend", "pkgfmt",
        "pkgmogrify", "pkgfmt",
        "pkgdepend", "pkgfmt",
        "pkgdepend",
        "pkglint",
        "pkgrepo", "pkgsend",
        "pkgrepo",
    ]
    assert result.artifact == {"name": FMRI, "path": str(tmp_path / "publish" / "repo")}


def test_command_arguments(tmp_path, intel_host, config):
    runner = FakeRunner()
    packager = _make_packager(tmp_path, intel_host, config, runner, keep_staging=True)
    assert packager.build().ok
    stage = packager.staging.root
    repo = str(tmp_path / "publish" / "repo")
    calls = runner.calls

    assert calls[0] == ["pkgsend", "generate", "/opt/app"]
    assert calls[2] == ["pkgmogrify", "-DARCH=i386", str(stage / "app-suite.p5m.1"), str(stage / "gen.manifestfile")]
    assert calls[4] == ["pkgdepend", "generate", "-md", "/opt/app", str(stage / "app-suite.p5m.2")]
    assert calls[6] == ["pkgdepend", "resolve", "-m", str(stage / "app-suite.p5m.3")]
    assert calls[7] == ["pkglint", "-c", str(stage / "lint-cache"), "-r", "http://pkg.oracle.com/solaris/release",
                        str(stage / "app-suite.p5m.3.res")]
    assert calls[8] == ["pkgrepo", "create", repo]
    assert calls[9] == ["pkgsend", "publish", "-s", repo, "-d", "/opt/app", str(stage / "app-suite.p5m.3.res")]
    assert calls[10] == ["pkgrepo", "add-publisher", "-s", repo, "ops"]

    manifest = (stage / "gen.manifestfile").read_text(encoding="utf-8")
    assert f"set name=pkg.fmri value={FMRI}" in manifest
    assert 'set name=pkg.description value="The \\"app\\" suite"' in manifest
    assert 'set name=pkg.summary value="App Suite"' in manifest
    assert (stage / "proto_install").is_dir()
    assert (stage / "app-suite.p5m.1").exists()


def test_lint_failure_fails_manifest_stage(tmp_path, intel_host, config):
    runner = FakeRunner(fail={"pkglint": 1})
    packager = _make_packager(tmp_path, intel_host, config, runner)
    result = packager.build()

    assert not result.ok
    assert result.stage == "generate_pkg_manifest"
    assert result.stages[-1].detail["substage"] == "check_manifest"
    assert result.error.stage == "check_manifest"
    assert "pkgrepo" not in runner.programs
    assert result.artifact is None


def test_configured_lint_url(tmp_path, intel_host, config):
    config.merged["ips"]["lint_url"] = "http://pkg.example.com/release"
    runner = FakeRunner()
    packager = _make_packager(tmp_path, intel_host, config, runner)
    assert packager.build().ok
    lint = next(c for c in runner.calls if c[0] == "pkglint")
    assert lint[4] == "http://pkg.example.com/release"


def test_default_repo_dir(tmp_path):
    assert default_repo_dir(str(tmp_path)) == tmp_path / "publish" / "repo"
