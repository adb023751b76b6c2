import shutil

import pytest

from solpack.modules.errors import CommandTimeout, ExternalToolFailure
from solpack.modules.shell import CommandRunner

pytestmark = pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")


def test_run_captures_output_to_file(tmp_path):
    runner = CommandRunner()
    out = tmp_path / "out"
    res = runner.run(["sh", "-c", "echo hello"], cwd=tmp_path, stdout_path=out)
    assert res.ok
    assert out.read_text(encoding="utf-8") == "hello\n"
    assert runner.history[-1].argv == ["sh", "-c", "echo hello"]


def test_run_appends_and_reads_stdin(tmp_path):
    runner = CommandRunner()
    src = tmp_path / "in"
    src.write_text("b\na\n", encoding="utf-8")
    out = tmp_path / "out"
    out.write_text("header\n", encoding="utf-8")
    runner.run(["sort"], stdin_path=src, stdout_path=out, append=True)
    assert out.read_text(encoding="utf-8") == "header\na\nb\n"


def test_non_zero_exit_raises_with_output():
    runner = CommandRunner()
    with pytest.raises(ExternalToolFailure) as exc:
        runner.run(["sh", "-c", "echo out; echo err >&2; exit 3"])
    err = exc.value
    assert err.returncode == 3
    assert err.stdout == "out\n"
    assert err.stderr == "err\n"
    assert "exit 3" in err.describe()


def test_missing_program_raises():
    with pytest.raises(ExternalToolFailure):
        CommandRunner().run(["solpack-no-such-tool"])


def test_timeout():
    runner = CommandRunner(timeout=0.2)
    with pytest.raises(CommandTimeout):
        runner.run(["sh", "-c", "sleep 5"])


def test_pipe_feeds_stdout_forward(tmp_path):
    out = tmp_path / "p5m"
    res = CommandRunner().pipe([["sh", "-c", "printf 'b\\na\\n'"], ["sort"]], stdout_path=out)
    assert res.stdout == "a\nb\n"
    assert out.read_text(encoding="utf-8") == "a\nb\n"


def test_pipe_checks_every_member():
    with pytest.raises(ExternalToolFailure) as exc:
        CommandRunner().pipe([["sh", "-c", "exit 1"], ["cat"]])
    assert exc.value.argv[0] == "sh"


def test_undecodable_output_is_written_back_unchanged(tmp_path):
    runner = CommandRunner()
    out = tmp_path / "out"
    res = runner.run(["sh", "-c", r"printf 'caf\351\n'"], stdout_path=out)
    assert res.ok
    assert out.read_bytes() == b"caf\xe9\n"


def test_undecodable_stdin_passes_through(tmp_path):
    runner = CommandRunner()
    src = tmp_path / "in"
    src.write_bytes(b"./opt/app/caf\xe9\n")
    out = tmp_path / "out"
    runner.run(["cat"], stdin_path=src, stdout_path=out)
    assert out.read_bytes() == b"./opt/app/caf\xe9\n"
