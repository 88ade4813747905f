"""Workspace files and the persisted per-day result record."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import PuzzleIdentity


@dataclass
class PartRecord:
    source: str | None
    answer: str | None
    submitted: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "answer": self.answer,
            "submitted": self.submitted,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PartRecord":
        return cls(
            source=data.get("source"),
            answer=data.get("answer"),
            submitted=bool(data.get("submitted", False)),
            message=str(data.get("message") or ""),
        )


@dataclass
class ResultRecord:
    """Durable outcome of a run; part2 stays absent unless phase two started."""

    part1: PartRecord
    part2: PartRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"part1": self.part1.to_dict()}
        if self.part2 is not None:
            data["part2"] = self.part2.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResultRecord":
        part2 = data.get("part2")
        return cls(
            part1=PartRecord.from_dict(data["part1"]),
            part2=PartRecord.from_dict(part2) if part2 is not None else None,
        )


class WorkspaceLayout:
    """Deterministic per-day paths under `inputs/` and `solutions/`."""

    def __init__(self, root: str | Path = ".", *, source_template: str = "Day{day}.kt") -> None:
        self.root = Path(root)
        self.inputs_dir = self.root / "inputs"
        self.solutions_dir = self.root / "solutions"
        self.source_template = source_template

    def ensure_dirs(self) -> None:
        for directory in (self.inputs_dir, self.solutions_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def input_path(self, identity: PuzzleIdentity) -> Path:
        return self.inputs_dir / f"day{identity.padded_day}.txt"

    def source_path(self, identity: PuzzleIdentity) -> Path:
        return self.solutions_dir / self.source_template.format(day=identity.padded_day)

    def record_path(self, identity: PuzzleIdentity) -> Path:
        return self.solutions_dir / f"day{identity.padded_day}.json"

    def description_path(self, identity: PuzzleIdentity) -> Path:
        return self.inputs_dir / f"day{identity.padded_day}.md"

    def write_input(self, identity: PuzzleIdentity, input_text: str) -> Path:
        path = self.input_path(identity)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(input_text + "\n", encoding="utf-8")
        return path

    def write_description(self, identity: PuzzleIdentity, description: str) -> Path:
        path = self.description_path(identity)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(description, encoding="utf-8")
        return path

    def write_source(self, identity: PuzzleIdentity, source_text: str) -> Path:
        path = self.source_path(identity)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source_text, encoding="utf-8")
        return path


def save_record(record: ResultRecord, output_path: str | Path) -> Path:
    """Persist the result record as indented JSON."""

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(record.to_dict(), indent=2) + "\n", encoding="utf-8")
    return output


def load_record(path: str | Path) -> ResultRecord:
    return ResultRecord.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
