"""Advent of Code auto-solver package."""

from .client import OpenAICompatChatClient
from .config import PuzzleIdentity
from .solver import PuzzleSolver, RunReport, SolverConfig

__all__ = [
    "OpenAICompatChatClient",
    "PuzzleIdentity",
    "PuzzleSolver",
    "RunReport",
    "SolverConfig",
]
