# solpack/modules/pipeline.py
# -*- coding: utf-8 -*-
"""
pipeline.py - ordered, fail-fast stage execution

API:
  p = Pipeline("solaris", [Stage("write_scripts", fn), Stage("copy_files", fn), ...])
  result = p.run(ctx)

Result:
  PipelineResult(
    ok=True/False,
    stage="complete" | <name of the failing top-level stage>,
    stages=[StageResult(ok, stage, detail), ...],   # in execution order
  )

Behaviour:
  - stages run in list order; each action receives the context object
  - a composite stage (children=[...]) runs its children in order, and a failing
    child fails the composite
  - the first failure stops the run: no later stage executes and nothing is
    rolled back
  - solpack errors become failed StageResults attributed to the stage that raised
    them; filesystem and text encoding errors (OSError, UnicodeError) are wrapped
    in StagingError first; any other exception propagates
  - a failure is logged at ERROR with the stage name as the record's ``stage``
    attribute, plus the captured output when an external tool failed
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from solpack.modules.errors import ExternalToolFailure, SolpackError, StagingError
from solpack.modules.logging import get_logger

logger = get_logger("pipeline")


def _now_ts() -> float:
    return time.time()


@dataclass
class Stage:
    name: str
    action: Optional[Callable[[Any], Any]] = None
    children: List["Stage"] = field(default_factory=list)

    def __post_init__(self):
        if self.action is None and not self.children:
            raise ValueError(f"stage {self.name} needs an action or children")


@dataclass
class StageResult:
    ok: bool
    stage: str
    detail: Dict[str, Any] = field(default_factory=dict)
    error: Optional[SolpackError] = None
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "stage": self.stage, "detail": self.detail, "duration": round(self.duration, 3)}


@dataclass
class PipelineResult:
    name: str
    ok: bool = False
    stage: str = ""
    stages: List[StageResult] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0
    artifact: Any = None
    error: Optional[SolpackError] = None

    @property
    def executed(self) -> List[str]:
        return [r.stage for r in self.stages]

    def raise_for_status(self) -> "PipelineResult":
        if not self.ok and self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "stage": self.stage,
            "stages": [r.to_dict() for r in self.stages],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "artifact": str(self.artifact) if self.artifact is not None else None,
        }


class Pipeline:
    def __init__(self, name: str, stages: List[Stage]):
        self.name = name
        self.stages = list(stages)

    def run(self, context: Any = None) -> PipelineResult:
        result = PipelineResult(name=self.name, started_at=_now_ts())
        logger.info("%s: running %d stages", self.name, len(self.stages))
        for stage in self.stages:
            res = self._run_stage(stage, context, result.stages)
            if not res.ok:
                result.stage = stage.name
                result.error = res.error
                result.finished_at = _now_ts()
                logger.error("%s: aborted at stage %s", self.name, stage.name)
                return result
        result.ok = True
        result.stage = "complete"
        result.finished_at = _now_ts()
        logger.info("%s: all stages complete", self.name)
        return result

    def _failed(self, stage: Stage, error: SolpackError, start: float, results: List[StageResult]) -> StageResult:
        if error.stage is None:
            error.stage = stage.name
        text = error.describe() if isinstance(error, ExternalToolFailure) else error.message
        logger.error("stage %s failed: %s", stage.name, text, extra={"stage": stage.name})
        res = StageResult(False, stage.name, error.to_dict(), error, _now_ts() - start)
        results.append(res)
        return res

    def _run_stage(self, stage: Stage, context: Any, results: List[StageResult]) -> StageResult:
        logger.info("stage %s: start", stage.name)
        start = _now_ts()
        if stage.children:
            for child in stage.children:
                child_res = self._run_stage(child, context, results)
                if not child_res.ok:
                    detail = dict(child_res.detail)
                    detail["substage"] = child_res.detail.get("substage", child.name)
                    res = StageResult(False, stage.name, detail, child_res.error, _now_ts() - start)
                    results.append(res)
                    return res
            res = StageResult(True, stage.name, {}, None, _now_ts() - start)
            results.append(res)
            logger.info("stage %s: done", stage.name)
            return res
        try:
            out = stage.action(context)
        except SolpackError as e:
            return self._failed(stage, e, start, results)
        except (OSError, UnicodeError) as e:
            wrapped = StagingError(f"{type(e).__name__}: {e}", stage=stage.name)
            wrapped.__cause__ = e
            return self._failed(stage, wrapped, start, results)
        detail = out if isinstance(out, dict) else {}
        res = StageResult(True, stage.name, detail, None, _now_ts() - start)
        results.append(res)
        logger.info("stage %s: done (%.2fs)", stage.name, res.duration)
        return res
