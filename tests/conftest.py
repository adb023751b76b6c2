from copy import deepcopy
from pathlib import Path

import pytest

from solpack.modules import config as config_mod
from solpack.modules.errors import ExternalToolFailure
from solpack.modules.hostinfo import HostInfo
from solpack.modules.shell import CommandResult


class FakeRunner:
    """Records command vectors instead of executing them.

    ``outputs`` maps a program name to the stdout it "prints"; ``fail`` maps a
    program name to the exit code it fails with.
    """

    def __init__(self, outputs=None, fail=None):
        self.outputs = dict(outputs or {})
        self.fail = dict(fail or {})
        self.calls = []

    @property
    def programs(self):
        return [argv[0] for argv in self.calls]

    def _exec(self, argv, cwd):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        prog = argv[0]
        if prog in self.fail:
            raise ExternalToolFailure(argv, self.fail[prog], "", f"{prog}: simulated failure")
        if prog == "pkgtrans":
            Path(argv[2]).write_bytes(b"# PaCkAgE DaTaStReAm\n")
        return CommandResult(argv, 0, self.outputs.get(prog, ""), "", 0.0, str(cwd) if cwd else None)

    def run(self, argv, cwd=None, stdin_path=None, input_text=None, stdout_path=None, append=False):
        res = self._exec(argv, cwd)
        if stdout_path is not None:
            with open(stdout_path, "a" if append else "w", encoding="utf-8") as fh:
                fh.write(res.stdout)
        return res

    def pipe(self, commands, cwd=None, stdout_path=None, append=False):
        res = None
        for argv in commands:
            res = self._exec(argv, cwd)
        if stdout_path is not None:
            with open(stdout_path, "a" if append else "w", encoding="utf-8") as fh:
                fh.write(res.stdout)
        return res


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def intel_host():
    return HostInfo(hostname="buildhost", machine="i86pc", processor="i386")


@pytest.fixture
def sparc_host():
    return HostInfo(hostname="buildhost", machine="sun4v", processor="sparc")


@pytest.fixture
def config(tmp_path):
    merged = deepcopy(config_mod.DEFAULTS)
    merged["build"]["staging_root"] = str(tmp_path / "staging")
    merged["build"]["output_dir"] = str(tmp_path / "pkg")
    return config_mod.Config(raw={}, merged=merged, path=None)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    monkeypatch.delenv("SOLPACK_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    config_mod.reset()
    yield
    config_mod.reset()


@pytest.fixture
def install_tree(tmp_path):
    root = tmp_path / "opt" / "app"
    (root / "bin").mkdir(parents=True)
    (root / "bin" / "app").write_text("#!/bin/sh\necho app\n", encoding="utf-8")
    (root / "lib").mkdir()
    (root / "lib" / "libapp.so").write_bytes(b"\x7fELF")
    (root / "cache").mkdir()
    (root / "cache" / "junk.tmp").write_text("junk", encoding="utf-8")
    return root


@pytest.fixture
def scripts_dir(tmp_path):
    d = tmp_path / "package-scripts"
    d.mkdir()
    (d / "postinst").write_text("#!/bin/sh\necho installed\n", encoding="utf-8")
    (d / "postrm").write_text("#!/bin/sh\necho removed\n", encoding="utf-8")
    return d
