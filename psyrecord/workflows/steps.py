"""
Ordered steps over one unit of work.

A step may only depend on steps declared before it, so declaration order
is already a valid execution order and a cycle cannot be expressed. Each
step sees the starting context plus the results of every step that has
completed so far. When a step fails, everything depending on it, directly
or through another step, is skipped; steps on other branches still run.

    flow = Workflow("delete_session")
    flow.add_step("delete_document_rows", delete_rows)
    flow.add_step("delete_session", delete_session, depends_on=["delete_document_rows"])
    run = flow.run({"session_ids": [session_id]})
    run.succeeded("delete_session")

A ``Workflow`` is only the definition; every ``run()`` returns a fresh
``WorkflowRun`` holding the per-step outcomes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

Action = Callable[[dict[str, Any]], "dict[str, Any] | None"]


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Step:
    name: str
    action: Action
    depends_on: tuple[str, ...] = ()


@dataclass
class StepOutcome:
    status: StepStatus
    result: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    duration_ms: float | None = None

    def as_dict(self) -> dict[str, Any]:
        if self.status == StepStatus.SKIPPED:
            return {"status": self.status.value}
        return {"status": self.status.value, "duration_ms": self.duration_ms, "error": self.error}


@dataclass
class WorkflowRun:
    workflow: str
    outcomes: dict[str, StepOutcome] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return all(o.status == StepStatus.SUCCESS for o in self.outcomes.values())

    def succeeded(self, name: str) -> bool:
        outcome = self.outcomes.get(name)
        return outcome is not None and outcome.status == StepStatus.SUCCESS

    def summary(self) -> dict[str, Any]:
        return {
            "workflow": self.workflow,
            "status": "completed" if self.completed else "failed",
            "steps": {name: outcome.as_dict() for name, outcome in self.outcomes.items()},
        }


class Workflow:
    def __init__(self, name: str):
        self.name = name
        self.steps: list[Step] = []

    def add_step(self, name: str, action: Action, depends_on: Iterable[str] = ()) -> Workflow:
        declared = set(self.order)
        if name in declared:
            raise ValueError(f"Duplicate step name: {name}")
        depends_on = tuple(depends_on)
        undeclared = [dep for dep in depends_on if dep not in declared]
        if undeclared:
            raise ValueError(
                f"Step '{name}' depends on undeclared step(s): {', '.join(undeclared)}"
            )
        self.steps.append(Step(name, action, depends_on))
        return self

    @property
    def order(self) -> list[str]:
        return [step.name for step in self.steps]

    def run(self, context: dict[str, Any] | None = None) -> WorkflowRun:
        context = dict(context or {})
        run = WorkflowRun(self.name)
        logger.info("Running '%s': %s", self.name, " -> ".join(self.order))

        for step in self.steps:
            if not all(run.succeeded(dep) for dep in step.depends_on):
                run.outcomes[step.name] = StepOutcome(StepStatus.SKIPPED)
                logger.warning("Skipping '%s' in '%s'", step.name, self.name)
                continue

            start = time.perf_counter()
            try:
                result = step.action(context) or {}
            except Exception as exc:
                outcome = StepOutcome(StepStatus.FAILED, error=str(exc))
                logger.error("Step '%s' of '%s' failed: %s", step.name, self.name, exc)
            else:
                context.update(result)
                outcome = StepOutcome(StepStatus.SUCCESS, result=result)
            outcome.duration_ms = round((time.perf_counter() - start) * 1000, 2)
            run.outcomes[step.name] = outcome

        logger.info("'%s' %s", self.name, "completed" if run.completed else "failed")
        return run
