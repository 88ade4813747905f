"""Parsing utilities for platform responses and generated-program output."""

from __future__ import annotations

import re
from dataclasses import dataclass

PART_ANSWER_RES = {
    1: re.compile(r"Part 1:[ \t]*(\S+)", flags=re.IGNORECASE),
    2: re.compile(r"Part 2:[ \t]*(\S+)", flags=re.IGNORECASE),
}

LEADING_FENCE_RE = re.compile(r"^\s*```[\w.+-]*[ \t]*\n?")
TRAILING_FENCE_RE = re.compile(r"\n?```\s*$")

UNKNOWN_SNIPPET_CHARS = 200


@dataclass(frozen=True)
class SubmissionOutcome:
    accepted: bool
    message: str


@dataclass(frozen=True)
class RunOutcome:
    part1_answer: str | None = None
    part2_answer: str | None = None

    def part(self, part: int) -> str | None:
        if part == 1:
            return self.part1_answer
        if part == 2:
            return self.part2_answer
        raise ValueError(f"Unknown puzzle part: {part}")


@dataclass(frozen=True)
class _ResponseRule:
    phrases: tuple[str, ...]
    accepted: bool
    message: str

    def matches(self, text: str) -> bool:
        return any(phrase in text for phrase in self.phrases)


# First matching rule wins. "Already completed" counts as success so that a
# re-run after an accepted answer does not stop the pipeline.
RESPONSE_RULES: tuple[_ResponseRule, ...] = (
    _ResponseRule(("That's the right answer", "You got rank"), True, "Correct answer"),
    _ResponseRule(("Did you already complete it",), True, "Already completed"),
    _ResponseRule(
        ("You gave an answer too recently",),
        False,
        "Rate limited: you gave an answer too recently",
    ),
    _ResponseRule(("That's not the right answer",), False, "Wrong answer"),
)


def classify_submission(response_text: str) -> SubmissionOutcome:
    """Map the extracted text of an answer page onto a submission outcome."""

    for rule in RESPONSE_RULES:
        if rule.matches(response_text):
            return SubmissionOutcome(accepted=rule.accepted, message=rule.message)

    snippet = " ".join(response_text.split())[:UNKNOWN_SNIPPET_CHARS]
    return SubmissionOutcome(accepted=False, message=f"Unknown response: {snippet}")


def extract_answers(stdout: str) -> RunOutcome:
    """Pull `Part 1: <token>` / `Part 2: <token>` answers out of program output."""

    answers: dict[int, str | None] = {}
    for part, pattern in PART_ANSWER_RES.items():
        match = pattern.search(stdout)
        answers[part] = match.group(1) if match else None

    return RunOutcome(part1_answer=answers[1], part2_answer=answers[2])


def strip_code_fences(text: str) -> str:
    """Drop a leading ```lang marker and a trailing ``` marker, if present."""

    cleaned = text.strip()
    cleaned = LEADING_FENCE_RE.sub("", cleaned, count=1)
    cleaned = TRAILING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()
