"""Run configuration: puzzle identity and environment-provided settings."""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_YEAR = 2025
DEFAULT_MODEL = "gpt-5.1"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TOOLCHAIN = "kotlin"
PUZZLE_MONTH = 12


class ConfigError(ValueError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class PuzzleIdentity:
    year: int
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.day <= 25:
            raise ConfigError(f"Puzzle day must be between 1 and 25, got {self.day}")

    @property
    def padded_day(self) -> str:
        return f"{self.day:02d}"

    def __str__(self) -> str:
        return f"{self.year} day {self.padded_day}"


@dataclass(frozen=True)
class Settings:
    session: str
    api_key: str | None
    year: int
    day_override: str | None
    model: str
    base_url: str
    toolchain: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        session = (env.get("AOC_SESSION") or "").strip()
        if not session:
            raise ConfigError("Missing AOC_SESSION env var")

        return cls(
            session=session,
            api_key=(env.get("OPENAI_API_KEY") or "").strip() or None,
            year=_parse_int(env.get("YEAR"), "YEAR", default=DEFAULT_YEAR),
            day_override=(env.get("DAY_OVERRIDE") or "").strip() or None,
            model=(env.get("AOC_MODEL") or "").strip() or DEFAULT_MODEL,
            base_url=(env.get("AOC_BASE_URL") or "").strip() or DEFAULT_BASE_URL,
            toolchain=(env.get("AOC_TOOLCHAIN") or "").strip() or DEFAULT_TOOLCHAIN,
        )


def _parse_int(value: str | None, name: str, *, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def resolve_day(override: str | int | None = None, today: dt.date | None = None) -> int:
    """Pick the puzzle day: explicit override, else today's UTC date in December, else 1."""

    if override is not None and str(override).strip():
        return _parse_int(str(override), "DAY_OVERRIDE", default=1)

    if today is None:
        today = dt.datetime.now(dt.timezone.utc).date()

    if today.month != PUZZLE_MONTH:
        print("Not December, defaulting to day=1 (set DAY_OVERRIDE to change).", flush=True)
        return 1

    return today.day


def resolve_identity(
    settings: Settings,
    *,
    year: int | None = None,
    day: int | None = None,
    today: dt.date | None = None,
) -> PuzzleIdentity:
    """Compute the run's identity once, before any collaborator is built."""

    override: str | int | None = day if day is not None else settings.day_override
    return PuzzleIdentity(
        year=year if year is not None else settings.year,
        day=resolve_day(override, today=today),
    )
