"""Prompt templates for generating puzzle solutions."""

from __future__ import annotations

from dataclasses import dataclass

# Request-size bounds tied to the generation service, not to the puzzles.
DESCRIPTION_PREFIX_CHARS = 12_000
FRESH_INPUT_SAMPLE_CHARS = 2_000
EXTEND_INPUT_SAMPLE_CHARS = 200


@dataclass(frozen=True)
class PromptBundle:
    system: str
    user: str


OUTPUT_CONTRACT = """Program contract:
- Read the puzzle input from the file path passed as the first command line argument.
- Print results on their own lines exactly as "Part 1: <answer>" and "Part 2: <answer>".
- Use only the standard library of the language and include every import.
- Make sure the code compiles and runs correctly.

Output format:
Respond with ONLY the {language} code, no markdown, no explanation, no code fences.
"""


def _system_prompt(language: str, year: int, task: str) -> str:
    return (
        f"You are an expert competitive programming assistant solving Advent of Code {year}.\n\n"
        f"{task}\n\n"
        + OUTPUT_CONTRACT.format(language=language)
    )


def build_fresh_prompt(
    description: str,
    input_text: str,
    *,
    language: str,
    year: int,
    day: int,
) -> PromptBundle:
    """Prompt for a first solution written from the Part 1 statement."""

    task = f"""You will be given:
1) The problem statement text (possibly slightly noisy).
2) A sample of the puzzle input to understand the format.

Your task:
- Carefully analyze what the puzzle asks for.
- Write a complete, working {language} program.
- Solve Part 1. If the statement also shows Part 2, solve Part 2 as well;
  otherwise print only the Part 1 line."""

    user = f"""Advent of Code {year}, day {day}.

=== PROBLEM STATEMENT ===
{description[:DESCRIPTION_PREFIX_CHARS]}

=== SAMPLE INPUT (for format understanding) ===
{input_text[:FRESH_INPUT_SAMPLE_CHARS]}
"""

    return PromptBundle(system=_system_prompt(language, year, task), user=user)


def build_extend_prompt(
    description: str,
    input_text: str,
    prior_source: str,
    *,
    language: str,
    year: int,
    day: int,
) -> PromptBundle:
    """Prompt asking to extend an accepted Part 1 program with Part 2."""

    task = f"""Part 1 of this puzzle is already solved and its answer was accepted.
You will be given:
1) The full statement: Part 1 followed by Part 2, which is written as a change to the Part 1 rules.
2) A short input sample (the format is already handled by the existing program).
3) The existing {language} program that solves Part 1.

Your task:
- Work out exactly how the Part 2 rules differ from the Part 1 rules.
- Return the complete updated {language} program.
- Keep the Part 1 computation and its output unchanged.
- Add the Part 2 computation and print both lines."""

    user = f"""Advent of Code {year}, day {day}.

=== PROBLEM STATEMENT (PART 1 + PART 2) ===
{description}

=== SAMPLE INPUT ===
{input_text[:EXTEND_INPUT_SAMPLE_CHARS]}

=== EXISTING PART 1 SOLUTION ===
{prior_source}
"""

    return PromptBundle(system=_system_prompt(language, year, task), user=user)
