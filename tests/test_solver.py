import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

import requests

from aocpilot.client import OpenAICompatChatClient
from aocpilot.config import PuzzleIdentity
from aocpilot.generator import SolutionGenerator
from aocpilot.harness import BuildError, BuildRunHarness, HarnessPolicy, get_toolchain
from aocpilot.langgraph_solver import LangGraphPuzzleSolver, is_langgraph_available
from aocpilot.parsing import RunOutcome, classify_submission
from aocpilot.pipeline import WorkspaceLayout, load_record
from aocpilot.solver import PuzzleSolver, SolverConfig, Stage

RIGHT = "That's the right answer! You are one gold star closer."
WRONG = "That's not the right answer; your answer is too high."
ALREADY = "You don't seem to be solving the right level. Did you already complete it?"


class FakeGateway:
    def __init__(self, submissions, *, input_text="1\n2\n3", on_full_fetch=None, fetch_error=None) -> None:
        self.submissions = list(submissions)
        self.input_text = input_text
        self.on_full_fetch = on_full_fetch
        self.fetch_error = fetch_error
        self.calls: list[tuple] = []

    def fetch_input(self, identity):
        self.calls.append(("input",))
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.input_text

    def fetch_description(self, identity, *, full_statement=False):
        self.calls.append(("description", full_statement))
        if full_statement:
            if self.on_full_fetch is not None:
                self.on_full_fetch()
            return "<article>sum the numbers</article>\n\n<article>now multiply</article>"
        return "<article>sum the numbers</article>"

    def submit_answer(self, identity, part, answer):
        self.calls.append(("submit", part, answer))
        response = self.submissions.pop(0)
        if isinstance(response, Exception):
            raise response
        return classify_submission(response)


class ScriptedClient:
    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.calls = 0

    def generate(self, *, system_prompt, user_prompt, temperature, max_tokens):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeHarness:
    def __init__(self, outcomes) -> None:
        self.outcomes = list(outcomes)
        self.sources: list[str] = []

    def build_and_execute(self, identity, source_path, input_path):
        self.sources.append(Path(source_path).read_text(encoding="utf-8"))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ReadOnlyAfterFirstWriteLayout(WorkspaceLayout):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.source_writes = 0

    def write_source(self, identity, source_text):
        self.source_writes += 1
        if self.source_writes > 1:
            raise PermissionError(13, "Permission denied", str(self.source_path(identity)))
        return super().write_source(identity, source_text)


class _ChatResponse:
    def __init__(self, status_code: int, payload, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class SolverTestBase(unittest.TestCase):
    solver_cls = PuzzleSolver

    def setUp(self) -> None:
        self._tmp = TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.identity = PuzzleIdentity(year=2025, day=1)
        self.sleeps: list[float] = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _solver(
        self,
        gateway,
        responses,
        harness,
        *,
        source_template="Day{day}.kt",
        language="Kotlin",
        client=None,
        layout=None,
    ):
        client = client or ScriptedClient(responses)
        self.client = client
        return self.solver_cls(
            gateway,
            SolutionGenerator(client, language=language),
            harness,
            layout or WorkspaceLayout(self.root, source_template=source_template),
            config=SolverConfig(part2_delay_sec=1.5),
            sleep=self.sleeps.append,
        )

    def _record_json(self) -> dict:
        path = self.root / "solutions" / "day01.json"
        return json.loads(path.read_text(encoding="utf-8"))


class PuzzleSolverTests(SolverTestBase):
    def test_full_success_runs_both_phases(self) -> None:
        gateway = FakeGateway([RIGHT, RIGHT])
        harness = FakeHarness([RunOutcome("6"), RunOutcome("6", "6")])
        solver = self._solver(gateway, ["```kotlin\npart1()\n```", "part1()\npart2()"], harness)

        report = solver.run(self.identity)

        self.assertEqual(report.status, "success")
        self.assertEqual(report.stages[-1], Stage.DONE)
        self.assertEqual(gateway.calls[-1], ("submit", 2, "6"))
        self.assertIn(("description", True), gateway.calls)
        self.assertEqual(self.sleeps, [1.5])
        self.assertEqual(harness.sources, ["part1()", "part1()\npart2()"])

        source_path = self.root / "solutions" / "Day01.kt"
        self.assertEqual(source_path.read_text(encoding="utf-8"), "part1()\npart2()")
        self.assertEqual((self.root / "inputs" / "day01.txt").read_text(encoding="utf-8"), "1\n2\n3\n")

        data = self._record_json()
        self.assertEqual(data["part1"]["answer"], "6")
        self.assertTrue(data["part1"]["submitted"])
        self.assertEqual(data["part1"]["source"], "```kotlin\npart1()\n```")
        self.assertTrue(data["part2"]["submitted"])
        self.assertEqual(data["part2"]["source"], "part1()\npart2()")

    def test_rejected_part_one_never_touches_part_two(self) -> None:
        gateway = FakeGateway([WRONG])
        harness = FakeHarness([RunOutcome("5")])
        solver = self._solver(gateway, ["code"], harness)

        report = solver.run(self.identity)

        self.assertEqual(report.status, "failed")
        self.assertNotIn(("description", True), gateway.calls)
        self.assertEqual([c for c in gateway.calls if c[0] == "submit"], [("submit", 1, "5")])
        self.assertEqual(self.client.calls, 1)
        self.assertEqual(len(harness.sources), 1)
        self.assertEqual(self.sleeps, [])
        for stage in (Stage.FETCHING_PART2, Stage.GENERATING_PART2, Stage.BUILDING_PART2, Stage.SUBMITTING_PART2):
            self.assertNotIn(stage, report.stages)

        data = self._record_json()
        self.assertNotIn("part2", data)
        self.assertFalse(data["part1"]["submitted"])
        self.assertIn("Wrong answer", data["part1"]["message"])

    def test_rate_limited_part_one_stops_like_wrong_answer(self) -> None:
        gateway = FakeGateway(["You gave an answer too recently; you have 30s left to wait."])
        solver = self._solver(gateway, ["code"], FakeHarness([RunOutcome("5")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "failed")
        self.assertIsNone(report.record.part2)
        self.assertIn("Rate limited", report.record.part1.message)

    def test_missing_part_one_answer_is_recorded_without_submitting(self) -> None:
        gateway = FakeGateway([])
        solver = self._solver(gateway, ["code"], FakeHarness([RunOutcome()]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "failed")
        self.assertFalse(any(c[0] == "submit" for c in gateway.calls))
        data = self._record_json()
        self.assertIsNone(data["part1"]["answer"])
        self.assertFalse(data["part1"]["submitted"])
        self.assertEqual(data["part1"]["source"], "code")
        self.assertNotIn("part2", data)

    def test_missing_part_two_answer_is_partial(self) -> None:
        gateway = FakeGateway([RIGHT])
        solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6"), RunOutcome("6")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        data = self._record_json()
        self.assertTrue(data["part1"]["submitted"])
        self.assertIsNone(data["part2"]["answer"])
        self.assertFalse(data["part2"]["submitted"])
        self.assertEqual([c for c in gateway.calls if c[0] == "submit"], [("submit", 1, "6")])

    def test_rejected_part_two_still_persists_both_parts(self) -> None:
        gateway = FakeGateway([RIGHT, WRONG])
        solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6"), RunOutcome("6", "7")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        data = self._record_json()
        self.assertTrue(data["part1"]["submitted"])
        self.assertEqual(data["part2"]["answer"], "7")
        self.assertFalse(data["part2"]["submitted"])
        self.assertIn("Wrong answer", data["part2"]["message"])

    def test_part_two_generation_failure_is_recorded(self) -> None:
        gateway = FakeGateway([RIGHT])
        solver = self._solver(
            gateway,
            ["v1", RuntimeError("Model request failed (500): boom")],
            FakeHarness([RunOutcome("6")]),
        )

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        part2 = report.record.part2
        self.assertIsNotNone(part2)
        self.assertIsNone(part2.source)
        self.assertFalse(part2.submitted)
        self.assertIn("GeneratingPart2 failed", part2.message)
        self.assertEqual((self.root / "solutions" / "Day01.kt").read_text(encoding="utf-8"), "v1")

    def test_part_two_build_failure_is_recorded(self) -> None:
        gateway = FakeGateway([RIGHT])
        harness = FakeHarness([RunOutcome("6"), BuildError("Compilation failed (exit 1)")])
        solver = self._solver(gateway, ["v1", "v2"], harness)

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        self.assertEqual(report.record.part2.source, "v2")
        self.assertIn("BuildingPart2 failed", report.record.part2.message)

    def test_part_two_submit_network_error_is_recorded(self) -> None:
        gateway = FakeGateway([RIGHT, requests.ConnectionError("reset")])
        solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6"), RunOutcome("6", "8")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        self.assertEqual(report.record.part2.answer, "8")
        self.assertIn("SubmittingPart2 failed", report.record.part2.message)

    def test_part_two_fetch_failure_is_recorded(self) -> None:
        def reject_full_fetch() -> None:
            raise requests.HTTPError("500 Server Error")

        gateway = FakeGateway([RIGHT], on_full_fetch=reject_full_fetch)
        harness = FakeHarness([RunOutcome("6")])
        solver = self._solver(gateway, ["v1"], harness)

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        self.assertEqual(self.client.calls, 1)
        self.assertEqual(len(harness.sources), 1)
        data = self._record_json()
        self.assertTrue(data["part1"]["submitted"])
        self.assertIsNone(data["part2"]["source"])
        self.assertIsNone(data["part2"]["answer"])
        self.assertFalse(data["part2"]["submitted"])
        self.assertIn("FetchingPart2 failed: 500 Server Error", data["part2"]["message"])

    def test_part_two_source_write_failure_is_recorded(self) -> None:
        gateway = FakeGateway([RIGHT])
        layout = ReadOnlyAfterFirstWriteLayout(self.root)
        solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6")]), layout=layout)

        report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        data = self._record_json()
        self.assertTrue(data["part1"]["submitted"])
        self.assertFalse(data["part2"]["submitted"])
        self.assertIn("GeneratingPart2 failed", data["part2"]["message"])
        self.assertIn("Permission denied", data["part2"]["message"])

    def test_part_two_model_rate_limit_with_string_error_is_recorded(self) -> None:
        gateway = FakeGateway([RIGHT])
        client = OpenAICompatChatClient(base_url="https://llm.example/v1", model="gpt-5.1", api_key="k")
        replies = [
            _ChatResponse(200, {"choices": [{"message": {"content": "v1"}}]}),
            _ChatResponse(429, {"error": "Rate limit reached"}, text='{"error": "Rate limit reached"}'),
        ]
        solver = self._solver(gateway, [], FakeHarness([RunOutcome("6")]), client=client)

        with patch("requests.post", side_effect=lambda *a, **k: replies.pop(0)):
            report = solver.run(self.identity)

        self.assertEqual(report.status, "partial")
        data = self._record_json()
        self.assertTrue(data["part1"]["submitted"])
        self.assertFalse(data["part2"]["submitted"])
        self.assertIn("GeneratingPart2 failed", data["part2"]["message"])
        self.assertIn("Rate limit reached", data["part2"]["message"])

    def test_part_one_regression_is_noted_but_not_fatal(self) -> None:
        gateway = FakeGateway([RIGHT, RIGHT])
        solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6"), RunOutcome("5", "9")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "success")
        self.assertIn("Part 1 output changed from 6 to 5", report.record.part2.message)

    def test_phase_one_fetch_error_propagates_without_record(self) -> None:
        gateway = FakeGateway([], fetch_error=requests.HTTPError("HTTP 400"))
        solver = self._solver(gateway, [], FakeHarness([]))

        with self.assertRaises(requests.HTTPError):
            solver.run(self.identity)

        self.assertFalse((self.root / "solutions" / "day01.json").exists())

    def test_phase_one_build_error_propagates(self) -> None:
        gateway = FakeGateway([])
        solver = self._solver(gateway, ["code"], FakeHarness([BuildError("Compilation failed")]))

        with self.assertRaises(BuildError):
            solver.run(self.identity)

        self.assertFalse(any(c[0] == "submit" for c in gateway.calls))
        self.assertFalse((self.root / "solutions" / "day01.json").exists())

    def test_rerun_after_acceptance_classifies_already_completed_as_success(self) -> None:
        for _ in range(2):
            gateway = FakeGateway([ALREADY, ALREADY])
            solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6"), RunOutcome("6", "6")]))

            report = solver.run(self.identity)

            self.assertEqual(report.status, "success")
            self.assertTrue(report.record.part1.submitted)
            self.assertEqual(report.record.part1.message, "Already completed")

        record = load_record(self.root / "solutions" / "day01.json")
        self.assertTrue(record.part2.submitted)


class EndToEndTests(SolverTestBase):
    PROGRAM = (
        "import sys\n"
        "numbers = [int(x) for x in open(sys.argv[1]).read().split()]\n"
        "print('Part 1: ' + str(sum(numbers)))\n"
        "print('Part 2: 0')\n"
    )

    def test_part_one_is_recorded_before_part_two_starts(self) -> None:
        seen_before_part2: list[dict] = []

        def snapshot() -> None:
            seen_before_part2.append(self._record_json())

        gateway = FakeGateway([RIGHT, WRONG], on_full_fetch=snapshot)
        toolchain = get_toolchain("python")
        harness = BuildRunHarness(toolchain, HarnessPolicy(compile_timeout_sec=30, run_timeout_sec=30))
        solver = self._solver(
            gateway,
            [self.PROGRAM, RuntimeError("generation service unavailable")],
            harness,
            source_template=toolchain.source_template,
            language=toolchain.language,
        )

        report = solver.run(self.identity)

        self.assertEqual(gateway.calls[2], ("submit", 1, "6"))
        self.assertEqual(len(seen_before_part2), 1)
        self.assertEqual(seen_before_part2[0]["part1"]["answer"], "6")
        self.assertTrue(seen_before_part2[0]["part1"]["submitted"])
        self.assertNotIn("part2", seen_before_part2[0])
        self.assertEqual(report.status, "partial")


@unittest.skipUnless(is_langgraph_available(), "langgraph is not installed")
class LangGraphPuzzleSolverTests(SolverTestBase):
    solver_cls = LangGraphPuzzleSolver

    def test_full_success_matches_classic_runner(self) -> None:
        gateway = FakeGateway([RIGHT, RIGHT])
        solver = self._solver(gateway, ["v1", "v2"], FakeHarness([RunOutcome("6"), RunOutcome("6", "6")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "success")
        self.assertEqual(
            report.stages,
            (
                Stage.FETCHING_PART1,
                Stage.GENERATING_PART1,
                Stage.BUILDING_PART1,
                Stage.SUBMITTING_PART1,
                Stage.WAITING_FOR_PART2,
                Stage.FETCHING_PART2,
                Stage.GENERATING_PART2,
                Stage.BUILDING_PART2,
                Stage.SUBMITTING_PART2,
                Stage.DONE,
            ),
        )

    def test_rejected_part_one_ends_graph(self) -> None:
        gateway = FakeGateway([WRONG])
        solver = self._solver(gateway, ["v1"], FakeHarness([RunOutcome("6")]))

        report = solver.run(self.identity)

        self.assertEqual(report.status, "failed")
        self.assertEqual(report.stages[-2:], (Stage.SUBMITTING_PART1, Stage.DONE))
        self.assertNotIn("part2", self._record_json())


if __name__ == "__main__":
    unittest.main()
