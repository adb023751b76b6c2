import io
import json
from copy import deepcopy

from solpack.modules import logging as logging_mod
from solpack.modules.config import DEFAULTS


def _logging_cfg(tmp_path, **overrides):
    cfg = deepcopy(DEFAULTS["logging"])
    cfg["color"] = False
    cfg["jsonl"] = {"enabled": True, "path": str(tmp_path / "log.jsonl"), "level": "INFO"}
    cfg.update(overrides)
    return cfg


def test_console_and_jsonl_output(tmp_path):
    stream = io.StringIO()
    logging_mod.configure(_logging_cfg(tmp_path), stream=stream)
    log = logging_mod.get_logger("solaris")
    log.info("building %s", "app-suite")
    log.debug("hidden at INFO")

    out = stream.getvalue()
    assert "[INFO] [solaris] building app-suite" in out
    assert "hidden" not in out

    records = [json.loads(line) for line in (tmp_path / "log.jsonl").read_text(encoding="utf-8").splitlines()]
    assert records[-1]["module"] == "solaris"
    assert records[-1]["message"] == "building app-suite"


def test_module_levels_and_override(tmp_path):
    stream = io.StringIO()
    logging_mod.configure(_logging_cfg(tmp_path, module_levels={"shell": "ERROR"}), level="DEBUG", stream=stream)
    logging_mod.get_logger("shell").info("RUN: pkgmk")
    logging_mod.get_logger("ips").debug("Rendered Template")
    out = stream.getvalue()
    assert "pkgmk" not in out
    assert "Rendered Template" in out


def test_metrics_count_levels(tmp_path):
    logging_mod.configure(_logging_cfg(tmp_path), stream=io.StringIO())
    before = logging_mod.get_metrics()["WARNING"]
    logging_mod.get_logger("normalize").warning("Converting `A' to `a'")
    assert logging_mod.get_metrics()["WARNING"] == before + 1


def test_per_call_extra_reaches_jsonl(tmp_path):
    logging_mod.configure(_logging_cfg(tmp_path), stream=io.StringIO())
    log = logging_mod.get_logger("pipeline")
    log.error("stage %s failed", "copy_files", extra={"stage": "copy_files"})
    log.info("no stage here")

    records = [json.loads(line) for line in (tmp_path / "log.jsonl").read_text(encoding="utf-8").splitlines()]
    assert records[-2]["stage"] == "copy_files"
    assert records[-2]["module"] == "pipeline"
    assert "stage" not in records[-1]
