"""Sequential step runner for installer pipelines.

A pipeline is an ordered list of ``Step`` objects executed one at a time
over a single ``RunContext``. Each step is an async callable; the runner
awaits it to completion before starting the next, so no two remote calls
of one run are ever in flight together.

Ordering contract:
    Every step declares the context fields it ``requires`` (must be set
    when it starts), the optional fields it ``reads`` and the fields it
    ``provides``. Before the first step runs, ``verify()`` checks that each
    required or read field is either seeded at context construction or
    provided by an earlier step. At step entry the runner additionally
    checks that required fields actually hold a value.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from .context import RunContext
from .errors import PipelineStateError

if TYPE_CHECKING:
    from che_installer.cli.shared.console import CLIConsole

# Fields populated when a RunContext is constructed
SEEDED_FIELDS: frozenset[str] = frozenset(
    {"flags", "resources_path", "custom_cr", "cr_patch", "warnings"}
)


class StepStatus(Enum):
    """How a step finished."""

    DONE = "done"
    CREATED = "created"
    UPDATED = "updated"
    EXISTS = "exists"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    """Result reported by a step."""

    status: StepStatus
    detail: str = ""

    @classmethod
    def done(cls, detail: str = "") -> StepOutcome:
        return cls(StepStatus.DONE, detail)

    @classmethod
    def created(cls, detail: str = "") -> StepOutcome:
        return cls(StepStatus.CREATED, detail)

    @classmethod
    def updated(cls, detail: str = "") -> StepOutcome:
        return cls(StepStatus.UPDATED, detail)

    @classmethod
    def exists(cls, detail: str = "") -> StepOutcome:
        return cls(StepStatus.EXISTS, detail)

    @classmethod
    def skipped(cls, detail: str = "") -> StepOutcome:
        return cls(StepStatus.SKIPPED, detail)

    @classmethod
    def failed(cls, detail: str = "") -> StepOutcome:
        return cls(StepStatus.FAILED, detail)


StepFn = Callable[[RunContext], Awaitable[StepOutcome]]


@dataclass(frozen=True)
class Step:
    """One unit of work in a pipeline."""

    title: str
    run: StepFn
    requires: frozenset[str] = frozenset()
    reads: frozenset[str] = frozenset()
    provides: frozenset[str] = frozenset()


@dataclass(frozen=True)
class StepRecord:
    """A finished step together with its outcome."""

    step: Step
    outcome: StepOutcome


_SUFFIXES = {
    StepStatus.DONE: "done.",
    StepStatus.CREATED: "created.",
    StepStatus.UPDATED: "updated.",
    StepStatus.EXISTS: "It already exists.",
    StepStatus.SKIPPED: "Skipped",
    StepStatus.FAILED: "Failed",
}


def describe_outcome(title: str, outcome: StepOutcome) -> str:
    """Render a step title with its outcome, e.g. ``Create CRD...done.``."""
    text = f"{title}...{_SUFFIXES[outcome.status]}"
    if outcome.detail:
        separator = ": " if outcome.status is StepStatus.SKIPPED else " "
        text = f"{text}{separator}{outcome.detail}"
    return text


class PipelineRunner:
    """Runs steps strictly in order over one shared context.

    Attributes:
        console: Optional console for progress output
    """

    def __init__(self, console: CLIConsole | None = None) -> None:
        """Initialize the runner.

        Args:
            console: Console used to report step progress (silent if None)
        """
        self.console = console

    @staticmethod
    def verify(
        steps: Sequence[Step],
        seeded: frozenset[str] = SEEDED_FIELDS,
    ) -> None:
        """Check the write-before-read contract of a step list.

        Raises:
            PipelineStateError: If a step reads a field no earlier step
                provides, or names a field the context does not have
        """
        known = RunContext.field_names()
        available = set(seeded)
        for index, step in enumerate(steps):
            declared = step.requires | step.reads | step.provides
            unknown = sorted(declared - known)
            if unknown:
                raise PipelineStateError(
                    f"Step '{step.title}' declares unknown context fields: "
                    f"{', '.join(unknown)}"
                )
            missing = sorted((step.requires | step.reads) - available)
            if missing:
                raise PipelineStateError(
                    f"Step {index + 1} '{step.title}' reads {', '.join(missing)} "
                    "before any earlier step provides it"
                )
            available |= step.provides

    async def run(self, steps: Sequence[Step], ctx: RunContext) -> list[StepRecord]:
        """Execute steps in order, stopping at the first error.

        Already finished steps are not undone when a later one fails.

        Returns:
            Records of every executed step, in order
        """
        self.verify(steps)
        records: list[StepRecord] = []

        for step in steps:
            missing = sorted(name for name in step.requires if getattr(ctx, name) is None)
            if missing:
                raise PipelineStateError(
                    f"Step '{step.title}' cannot start: "
                    f"{', '.join(missing)} not initialized"
                )

            warnings_before = len(ctx.warnings)
            logger.debug(f"Starting step: {step.title}")
            if self.console is not None:
                with self.console.status(f"[bold cyan]{step.title}..."):
                    outcome = await step.run(ctx)
            else:
                outcome = await step.run(ctx)

            self._report(step, outcome, ctx.warnings[warnings_before:])
            records.append(StepRecord(step=step, outcome=outcome))

        return records

    def _report(self, step: Step, outcome: StepOutcome, warnings: list[str]) -> None:
        message = describe_outcome(step.title, outcome)
        logger.info(message)
        if self.console is None:
            return

        for warning in warnings:
            self.console.warn(warning)
        if outcome.status is StepStatus.FAILED:
            self.console.warn(message)
        elif outcome.status in (StepStatus.EXISTS, StepStatus.SKIPPED):
            self.console.info(message)
        else:
            self.console.ok(message)
