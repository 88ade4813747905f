"""Compile generated source and run it against the puzzle input."""

from __future__ import annotations

import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path

from .config import PuzzleIdentity
from .parsing import RunOutcome, extract_answers


class HarnessError(RuntimeError):
    """Base error for toolchain failures."""


class BuildError(HarnessError):
    """Raised when generated source fails to compile."""


class ExecutionError(HarnessError):
    """Raised when the compiled artifact fails to run."""


@dataclass(frozen=True)
class Toolchain:
    """Command templates for one target language.

    Templates may reference `{source}`, `{artifact}` and `{input}`; file
    names may reference `{day}` (zero padded).
    """

    name: str
    language: str
    source_template: str
    artifact_template: str
    compile_cmd: tuple[str, ...]
    run_cmd: tuple[str, ...]

    def source_name(self, identity: PuzzleIdentity) -> str:
        return self.source_template.format(day=identity.padded_day)

    def artifact_name(self, identity: PuzzleIdentity) -> str:
        return self.artifact_template.format(day=identity.padded_day)


TOOLCHAINS: dict[str, Toolchain] = {
    "kotlin": Toolchain(
        name="kotlin",
        language="Kotlin",
        source_template="Day{day}.kt",
        artifact_template="Day{day}.jar",
        compile_cmd=("kotlinc", "{source}", "-include-runtime", "-d", "{artifact}"),
        run_cmd=("java", "-jar", "{artifact}", "{input}"),
    ),
    "python": Toolchain(
        name="python",
        language="Python 3",
        source_template="day{day}.py",
        artifact_template="day{day}.py",
        compile_cmd=(sys.executable, "-m", "py_compile", "{source}"),
        run_cmd=(sys.executable, "{artifact}", "{input}"),
    ),
}


def get_toolchain(name: str) -> Toolchain:
    try:
        return TOOLCHAINS[name]
    except KeyError:
        raise ValueError(
            f"Unknown toolchain {name!r}; expected one of {sorted(TOOLCHAINS)}"
        ) from None


@dataclass(frozen=True)
class HarnessPolicy:
    compile_timeout_sec: float | None = 300
    run_timeout_sec: float | None = 300
    max_output_chars: int = 4_000


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str
    duration_sec: float


def summarize_result(result: ProcessResult, limit: int = 120) -> str:
    """Short string for console narration."""

    status = "ok" if result.returncode == 0 else f"exit {result.returncode}"
    out = result.stdout.strip().replace("\n", " ")
    return f"{status} ({result.duration_sec:.2f}s): {out[:limit]}"


class BuildRunHarness:
    """Runs the external toolchain; any failure here is fatal for the phase."""

    def __init__(self, toolchain: Toolchain, policy: HarnessPolicy | None = None) -> None:
        self.toolchain = toolchain
        self.policy = policy or HarnessPolicy()

    def artifact_path(self, identity: PuzzleIdentity, source_path: Path) -> Path:
        return Path(source_path).parent / self.toolchain.artifact_name(identity)

    def _render(self, template: tuple[str, ...], **values: Path) -> list[str]:
        return [part.format(**{key: str(value) for key, value in values.items()}) for part in template]

    def _invoke(self, cmd: list[str], timeout: float | None, error_cls: type[HarnessError]) -> ProcessResult:
        start = time.perf_counter()
        try:
            process = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise error_cls(f"{cmd[0]} timed out after {timeout}s") from exc
        except OSError as exc:
            raise error_cls(f"Could not start {cmd[0]}: {exc}") from exc

        return ProcessResult(
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
            duration_sec=time.perf_counter() - start,
        )

    def build(self, identity: PuzzleIdentity, source_path: Path) -> Path:
        artifact = self.artifact_path(identity, source_path)
        cmd = self._render(self.toolchain.compile_cmd, source=Path(source_path), artifact=artifact)

        print(f"Compiling {source_path} with {self.toolchain.name}...", flush=True)
        result = self._invoke(cmd, self.policy.compile_timeout_sec, BuildError)
        if result.returncode != 0:
            excerpt = (result.stderr or result.stdout).strip()[: self.policy.max_output_chars]
            raise BuildError(f"Compilation failed (exit {result.returncode}):\n{excerpt}")

        return artifact

    def execute(self, artifact: Path, input_path: Path) -> ProcessResult:
        cmd = self._render(self.toolchain.run_cmd, artifact=Path(artifact), input=Path(input_path))

        print(f"Running {artifact} on {input_path}...", flush=True)
        result = self._invoke(cmd, self.policy.run_timeout_sec, ExecutionError)

        if result.stderr.strip():
            print(
                "Warning: generated program wrote to stderr:\n"
                + result.stderr.strip()[: self.policy.max_output_chars],
                file=sys.stderr,
                flush=True,
            )

        if result.returncode != 0:
            raise ExecutionError(f"Program exited with status {result.returncode}")

        print(f"Program output {summarize_result(result)}", flush=True)
        return result

    def build_and_execute(
        self,
        identity: PuzzleIdentity,
        source_path: Path,
        input_path: Path,
    ) -> RunOutcome:
        artifact = self.build(identity, source_path)
        result = self.execute(artifact, input_path)
        return extract_answers(result.stdout)
