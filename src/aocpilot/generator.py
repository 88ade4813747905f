"""Single-call solution generation on top of a chat client."""

from __future__ import annotations

from dataclasses import dataclass

from .client import ChatClient
from .config import PuzzleIdentity
from .parsing import strip_code_fences
from .prompts import build_extend_prompt, build_fresh_prompt


class GenerationError(RuntimeError):
    """Raised when the model returns nothing usable as source code."""


@dataclass(frozen=True)
class GeneratedSolution:
    source_text: str
    raw_model_output: str
    mode: str


class SolutionGenerator:
    """Builds the fresh or extend prompt and returns cleaned program source."""

    def __init__(
        self,
        client: ChatClient,
        *,
        language: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self.client = client
        self.language = language
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(
        self,
        identity: PuzzleIdentity,
        input_text: str,
        description: str,
        prior_source: str | None = None,
    ) -> GeneratedSolution:
        if prior_source is None:
            mode = "fresh"
            prompt = build_fresh_prompt(
                description,
                input_text,
                language=self.language,
                year=identity.year,
                day=identity.day,
            )
        else:
            mode = "extend"
            prompt = build_extend_prompt(
                description,
                input_text,
                prior_source,
                language=self.language,
                year=identity.year,
                day=identity.day,
            )

        raw = self.client.generate(
            system_prompt=prompt.system,
            user_prompt=prompt.user,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        ).strip()

        source = strip_code_fences(raw)
        if not source:
            raise GenerationError(f"Model returned no {self.language} source ({mode} mode)")

        return GeneratedSolution(source_text=source, raw_model_output=raw, mode=mode)
