"""LangGraph-based orchestration of the two-phase puzzle run."""

from __future__ import annotations

from typing import TypedDict

try:
    from langgraph.graph import END, START, StateGraph
except Exception as exc:  # pragma: no cover - exercised in environments without langgraph
    END = START = StateGraph = None
    _LANGGRAPH_IMPORT_ERROR: Exception | None = exc
else:  # pragma: no cover - import has no behavior to test directly
    _LANGGRAPH_IMPORT_ERROR = None

from .config import PuzzleIdentity
from .solver import PuzzleSolver, RunContext, RunReport, Stage, Step


class LangGraphUnavailableError(RuntimeError):
    """Raised when the user selects LangGraph orchestration but dependency is missing."""


def is_langgraph_available() -> bool:
    """Return whether LangGraph runtime is importable."""

    return _LANGGRAPH_IMPORT_ERROR is None


class _GraphState(TypedDict, total=False):
    context: RunContext
    proceed: bool


class LangGraphPuzzleSolver(PuzzleSolver):
    """Same stages and persistence as `PuzzleSolver`, wired as a StateGraph.

    Each stage is a node; a node that reaches a terminal outcome routes to
    END instead of the next stage.
    """

    def __init__(self, *args, **kwargs) -> None:
        if not is_langgraph_available():
            raise LangGraphUnavailableError(
                "LangGraph is not installed. Install with `pip install 'aocpilot[agentic]'`."
            ) from _LANGGRAPH_IMPORT_ERROR

        super().__init__(*args, **kwargs)
        self._graph = self._build_graph()

    def run(self, identity: PuzzleIdentity) -> RunReport:
        ctx = self._start(identity)
        self._graph.invoke({"context": ctx, "proceed": True})
        return self._finish(ctx)

    def _build_graph(self):
        builder = StateGraph(_GraphState)
        steps = self._steps()

        for stage, step in steps:
            builder.add_node(stage.value, self._make_node(stage, step))

        builder.add_edge(START, steps[0][0].value)
        for (stage, _), (next_stage, _) in zip(steps, steps[1:]):
            builder.add_conditional_edges(
                stage.value,
                self._route,
                {"next": next_stage.value, "end": END},
            )
        builder.add_edge(steps[-1][0].value, END)
        return builder.compile()

    def _make_node(self, stage: Stage, step: Step):
        def node(state: _GraphState) -> _GraphState:
            return {"proceed": self._run_step(state["context"], stage, step)}

        node.__name__ = f"node_{stage.name.lower()}"
        return node

    def _route(self, state: _GraphState) -> str:
        return "next" if state.get("proceed") else "end"
