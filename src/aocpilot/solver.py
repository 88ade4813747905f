"""Two-phase orchestration: solve Part 1, then extend the accepted solution to Part 2."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

import requests

from .config import PuzzleIdentity
from .generator import GeneratedSolution, SolutionGenerator
from .parsing import RunOutcome, SubmissionOutcome
from .pipeline import PartRecord, ResultRecord, WorkspaceLayout, save_record

# Failures after Part 1 was accepted are recorded, not raised. OSError covers
# file writes; ValueError and TypeError cover malformed collaborator replies.
PART2_SOFT_ERRORS: tuple[type[BaseException], ...] = (
    requests.RequestException,
    OSError,
    RuntimeError,
    ValueError,
    TypeError,
)


class Stage(str, Enum):
    FETCHING_PART1 = "FetchingPart1"
    GENERATING_PART1 = "GeneratingPart1"
    BUILDING_PART1 = "BuildingPart1"
    SUBMITTING_PART1 = "SubmittingPart1"
    WAITING_FOR_PART2 = "WaitingForPart2"
    FETCHING_PART2 = "FetchingPart2"
    GENERATING_PART2 = "GeneratingPart2"
    BUILDING_PART2 = "BuildingPart2"
    SUBMITTING_PART2 = "SubmittingPart2"
    DONE = "Done"


PART2_STAGES = frozenset(
    {
        Stage.FETCHING_PART2,
        Stage.GENERATING_PART2,
        Stage.BUILDING_PART2,
        Stage.SUBMITTING_PART2,
    }
)


class PuzzleGateway(Protocol):
    def fetch_input(self, identity: PuzzleIdentity) -> str:
        ...

    def fetch_description(self, identity: PuzzleIdentity, *, full_statement: bool = False) -> str:
        ...

    def submit_answer(self, identity: PuzzleIdentity, part: int, answer: str) -> SubmissionOutcome:
        ...


class Harness(Protocol):
    def build_and_execute(
        self,
        identity: PuzzleIdentity,
        source_path: Path,
        input_path: Path,
    ) -> RunOutcome:
        ...


@dataclass(frozen=True)
class SolverConfig:
    part2_delay_sec: float = 5.0
    check_part1_regression: bool = True


@dataclass
class RunContext:
    """Mutable state of one run; the record is the only part that is persisted."""

    identity: PuzzleIdentity
    input_text: str = ""
    input_path: Path | None = None
    description: str = ""
    solution: GeneratedSolution | None = None
    source_path: Path | None = None
    outcome: RunOutcome | None = None
    part1_source: str | None = None
    part1_answer: str | None = None
    record: ResultRecord | None = None
    stages: list[Stage] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RunReport:
    identity: PuzzleIdentity
    record: ResultRecord
    status: str
    stages: tuple[Stage, ...]
    record_path: Path


Step = Callable[[RunContext], bool]


class PuzzleSolver:
    """Classic sequential runner of the two-phase state machine."""

    def __init__(
        self,
        gateway: PuzzleGateway,
        generator: SolutionGenerator,
        harness: Harness,
        layout: WorkspaceLayout,
        *,
        config: SolverConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gateway = gateway
        self.generator = generator
        self.harness = harness
        self.layout = layout
        self.config = config or SolverConfig()
        self.sleep = sleep

    def run(self, identity: PuzzleIdentity) -> RunReport:
        ctx = self._start(identity)
        for stage, step in self._steps():
            if not self._run_step(ctx, stage, step):
                break
        return self._finish(ctx)

    def _steps(self) -> list[tuple[Stage, Step]]:
        return [
            (Stage.FETCHING_PART1, self._fetch_part1),
            (Stage.GENERATING_PART1, self._generate_part1),
            (Stage.BUILDING_PART1, self._build_part1),
            (Stage.SUBMITTING_PART1, self._submit_part1),
            (Stage.WAITING_FOR_PART2, self._wait_for_part2),
            (Stage.FETCHING_PART2, self._fetch_part2),
            (Stage.GENERATING_PART2, self._generate_part2),
            (Stage.BUILDING_PART2, self._build_part2),
            (Stage.SUBMITTING_PART2, self._submit_part2),
        ]

    def _log(self, ctx: RunContext, message: str) -> None:
        print(f"[{ctx.identity}] {message}", flush=True)

    def _start(self, identity: PuzzleIdentity) -> RunContext:
        self.layout.ensure_dirs()
        return RunContext(identity=identity)

    def _run_step(self, ctx: RunContext, stage: Stage, step: Step) -> bool:
        ctx.stages.append(stage)
        self._log(ctx, f"-> {stage.value}")

        if stage not in PART2_STAGES:
            return step(ctx)

        try:
            return step(ctx)
        except PART2_SOFT_ERRORS as exc:
            self._log(ctx, f"Warning: {stage.value} failed: {exc}")
            source = None
            answer = None
            if stage in (Stage.BUILDING_PART2, Stage.SUBMITTING_PART2) and ctx.solution is not None:
                source = ctx.solution.raw_model_output
            if stage is Stage.SUBMITTING_PART2 and ctx.outcome is not None:
                answer = ctx.outcome.part2_answer
            self._record_part2(
                ctx,
                PartRecord(
                    source=source,
                    answer=answer,
                    submitted=False,
                    message=self._with_notes(ctx, f"{stage.value} failed: {exc}"),
                ),
            )
            return False

    def _finish(self, ctx: RunContext) -> RunReport:
        record = ctx.record
        if record is None:
            raise RuntimeError("Run ended without a result record")

        if not record.part1.submitted:
            status = "failed"
        elif record.part2 is not None and record.part2.submitted:
            status = "success"
        else:
            status = "partial"

        ctx.stages.append(Stage.DONE)
        self._log(ctx, f"-> {Stage.DONE.value} ({status})")
        return RunReport(
            identity=ctx.identity,
            record=record,
            status=status,
            stages=tuple(ctx.stages),
            record_path=self.layout.record_path(ctx.identity),
        )

    def _persist(self, ctx: RunContext) -> None:
        if ctx.record is None:
            return
        path = save_record(ctx.record, self.layout.record_path(ctx.identity))
        self._log(ctx, f"Saved result record to {path}")

    def _record_part2(self, ctx: RunContext, part2: PartRecord) -> None:
        if ctx.record is None:
            raise RuntimeError("Part 2 recorded before Part 1")
        ctx.record.part2 = part2
        self._persist(ctx)

    def _with_notes(self, ctx: RunContext, message: str) -> str:
        if not ctx.notes:
            return message
        return "; ".join([message, *ctx.notes])

    # Phase one. Exceptions raised here propagate to the caller.

    def _fetch_part1(self, ctx: RunContext) -> bool:
        ctx.input_text = self.gateway.fetch_input(ctx.identity)
        ctx.input_path = self.layout.write_input(ctx.identity, ctx.input_text)
        self._log(ctx, f"Downloaded input to {ctx.input_path}")
        ctx.description = self.gateway.fetch_description(ctx.identity, full_statement=False)
        return True

    def _generate_part1(self, ctx: RunContext) -> bool:
        ctx.solution = self.generator.generate(ctx.identity, ctx.input_text, ctx.description)
        ctx.source_path = self.layout.write_source(ctx.identity, ctx.solution.source_text)
        self._log(ctx, f"Saved generated solution to {ctx.source_path}")
        return True

    def _build_part1(self, ctx: RunContext) -> bool:
        assert ctx.solution is not None and ctx.source_path is not None and ctx.input_path is not None
        ctx.outcome = self.harness.build_and_execute(ctx.identity, ctx.source_path, ctx.input_path)
        ctx.part1_source = ctx.solution.raw_model_output

        if not ctx.outcome.part1_answer:
            self._log(ctx, "No Part 1 answer found in program output")
            ctx.record = ResultRecord(
                part1=PartRecord(
                    source=ctx.part1_source,
                    answer=None,
                    submitted=False,
                    message="No Part 1 answer found in program output",
                )
            )
            self._persist(ctx)
            return False

        ctx.part1_answer = ctx.outcome.part1_answer
        self._log(ctx, f"Part 1 answer: {ctx.part1_answer}")
        return True

    def _submit_part1(self, ctx: RunContext) -> bool:
        assert ctx.part1_answer is not None
        submission = self.gateway.submit_answer(ctx.identity, 1, ctx.part1_answer)
        self._log(ctx, f"Part 1 submission: {submission.message}")

        ctx.record = ResultRecord(
            part1=PartRecord(
                source=ctx.part1_source,
                answer=ctx.part1_answer,
                submitted=submission.accepted,
                message=submission.message,
            )
        )
        self._persist(ctx)
        return submission.accepted

    def _wait_for_part2(self, ctx: RunContext) -> bool:
        delay = self.config.part2_delay_sec
        if delay > 0:
            self._log(ctx, f"Waiting {delay:g}s before fetching Part 2")
            self.sleep(delay)
        return True

    # Phase two. Part 1 is final; failures only fill in the part2 entry.

    def _fetch_part2(self, ctx: RunContext) -> bool:
        ctx.description = self.gateway.fetch_description(ctx.identity, full_statement=True)
        return True

    def _generate_part2(self, ctx: RunContext) -> bool:
        assert ctx.solution is not None
        ctx.solution = self.generator.generate(
            ctx.identity,
            ctx.input_text,
            ctx.description,
            prior_source=ctx.solution.source_text,
        )
        ctx.source_path = self.layout.write_source(ctx.identity, ctx.solution.source_text)
        self._log(ctx, f"Overwrote solution with Part 2 version at {ctx.source_path}")
        return True

    def _build_part2(self, ctx: RunContext) -> bool:
        assert ctx.solution is not None and ctx.source_path is not None and ctx.input_path is not None
        ctx.outcome = self.harness.build_and_execute(ctx.identity, ctx.source_path, ctx.input_path)

        if self.config.check_part1_regression and ctx.outcome.part1_answer != ctx.part1_answer:
            note = (
                f"Part 1 output changed from {ctx.part1_answer} to {ctx.outcome.part1_answer} "
                "in the Part 2 program"
            )
            self._log(ctx, f"Warning: {note}")
            ctx.notes.append(note)

        if not ctx.outcome.part2_answer:
            self._log(ctx, "No Part 2 answer found in program output")
            self._record_part2(
                ctx,
                PartRecord(
                    source=ctx.solution.raw_model_output,
                    answer=None,
                    submitted=False,
                    message=self._with_notes(ctx, "No Part 2 answer found in program output"),
                ),
            )
            return False

        self._log(ctx, f"Part 2 answer: {ctx.outcome.part2_answer}")
        return True

    def _submit_part2(self, ctx: RunContext) -> bool:
        assert ctx.solution is not None and ctx.outcome is not None and ctx.outcome.part2_answer
        submission = self.gateway.submit_answer(ctx.identity, 2, ctx.outcome.part2_answer)
        self._log(ctx, f"Part 2 submission: {submission.message}")

        self._record_part2(
            ctx,
            PartRecord(
                source=ctx.solution.raw_model_output,
                answer=ctx.outcome.part2_answer,
                submitted=submission.accepted,
                message=self._with_notes(ctx, submission.message),
            ),
        )
        return submission.accepted
