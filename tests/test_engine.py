"""Tests for the public entry points ``evaluate`` and ``process_document``."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from notecalc import (
    ArgumentError,
    DivisionByZeroError,
    EvaluationContext,
    EvaluationError,
    ParseError,
    UnknownFunctionError,
    evaluate,
    process_document,
)


# ---------------------------------------------------------------------------
# evaluate()
# ---------------------------------------------------------------------------


class TestEvaluate:
    def test_basic(self) -> None:
        assert evaluate("2+2") == "4"

    def test_precedence(self) -> None:
        assert evaluate("2+2*3") == "8"

    def test_right_associative_power(self) -> None:
        assert evaluate("2^3^2") == "512"

    def test_variables_from_mapping(self) -> None:
        assert evaluate("x", {"variables": {"x": 10}}) == "10"

    def test_line_results_from_mapping(self) -> None:
        ctx = {"variables": {}, "lineResults": {1: 5, 2: 2.5}}
        assert evaluate("@1 * @2", ctx) == "12.5"

    def test_context_object(self) -> None:
        ctx = EvaluationContext.create(variables={"rate": 0.2}, line_results={3: 150})
        assert evaluate("@3 * rate", ctx) == "30"

    def test_functions(self) -> None:
        assert evaluate("sum(1,2,3)") == "6"
        assert evaluate("avg(min(1,2), max(3,4))") == "2.5"

    def test_function_arguments_use_context(self) -> None:
        ctx = {"variables": {"a": 3, "b": 4}}
        assert evaluate("max(a, b * 2)", ctx) == "8"

    def test_case_insensitive_function(self) -> None:
        assert evaluate("AVG(2, 4)") == "3"

    def test_thousands_separators(self) -> None:
        assert evaluate("1,234 + 1") == "1235"

    def test_commas_in_calls_are_argument_separators(self) -> None:
        assert evaluate("max(1,100)") == "100"

    def test_leading_equals_and_glyphs(self) -> None:
        assert evaluate("= 6 × 7") == "42"

    def test_precision(self) -> None:
        assert evaluate("10 / 3") == "3.33"
        assert evaluate("10 / 3", precision=5) == "3.33333"
        assert evaluate("10 / 3", precision=0) == "3"

    def test_round_half_up(self) -> None:
        assert evaluate("round(2.5)") == "3"

    def test_max_depth(self) -> None:
        assert evaluate("abs(abs(abs(-1)))", max_depth=3) == "1"
        with pytest.raises(EvaluationError):
            evaluate("abs(abs(abs(-1)))", max_depth=2)

    def test_long_operator_chain(self) -> None:
        assert evaluate("+".join(["1"] * 3000)) == "3000"
        assert evaluate("2" + "^1" * 3000) == "2"


class TestEvaluateErrors:
    def test_division_by_zero(self) -> None:
        with pytest.raises(DivisionByZeroError):
            evaluate("1/0")

    def test_remainder_by_zero(self) -> None:
        with pytest.raises(DivisionByZeroError):
            evaluate("7 % 0")

    def test_unbalanced(self) -> None:
        with pytest.raises(ParseError):
            evaluate("(2+3")

    def test_unknown_function(self) -> None:
        with pytest.raises(UnknownFunctionError):
            evaluate("foo(1)")

    def test_no_arguments(self) -> None:
        with pytest.raises(ArgumentError):
            evaluate("avg()")

    def test_non_numeric_argument(self) -> None:
        with pytest.raises(ArgumentError):
            evaluate("sum(1, apples)")

    def test_domain_error(self) -> None:
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("sqrt(-1)")
        assert exc_info.value.kind == "evaluation_error"

    def test_unknown_name(self) -> None:
        with pytest.raises(ParseError, match="unknown name 'x'"):
            evaluate("x + 1")

    def test_code_is_not_executed(self) -> None:
        with pytest.raises(UnknownFunctionError):
            evaluate("__import__('os')")
        with pytest.raises(ParseError):
            evaluate("2 + [1][0]")

    def test_non_numeric_context_value(self) -> None:
        with pytest.raises(EvaluationError, match="not a number"):
            evaluate("x", {"variables": {"x": "abc"}})

    def test_non_numeric_line_key(self) -> None:
        with pytest.raises(EvaluationError, match="line numbers"):
            evaluate("@1", {"line_results": {"first": 1}})


# ---------------------------------------------------------------------------
# process_document()
# ---------------------------------------------------------------------------


class TestProcessDocument:
    def test_variables_and_results(self) -> None:
        result = process_document("x = 10\ny = 20\nsum = x + y")
        assert result.variables == {"x": 10.0, "y": 20.0, "sum": 30.0}
        assert result.results == {1: 10.0, 2: 20.0, 3: 30.0}

    def test_forward_reference(self) -> None:
        result = process_document("b = a + 1\na = 5")
        assert result.variables["a"] == 5.0
        assert result.variables["b"] == 6.0

    def test_line_reference(self) -> None:
        assert process_document("5\n@1 + 3").results[2] == 8.0

    def test_cycle_terminates(self) -> None:
        result = process_document("a = b + 1\nb = a + 1")
        assert result.iterations == 10
        assert not result.converged

    def test_max_iterations(self) -> None:
        result = process_document("a = b + 1\nb = a + 1", max_iterations=3)
        assert result.iterations == 3

    def test_max_iterations_below_one_runs_one_pass(self) -> None:
        result = process_document("x = 1", max_iterations=0)
        assert result.iterations == 1
        assert result.variables == {"x": 1.0}
        assert process_document("x = 1", max_iterations=-5).iterations == 1

    def test_long_line(self) -> None:
        result = process_document("x = " + "+".join(["1"] * 3000) + "\ny = x / 1000")
        assert result.variables == {"x": 3000.0, "y": 3.0}

    def test_idempotent(self) -> None:
        text = "b = a + 1\na = 5\nTotal: a * b"
        first, second = process_document(text), process_document(text)
        assert first.results == second.results
        assert first.variables == second.variables

    @pytest.mark.parametrize("text", [
        "",
        "\n\n\n",
        "((((",
        "x = ",
        "= = =",
        "@@@1",
        "max(",
        "sum(1,2",
        ")",
        "x = 1e999",
        "9" * 400 + " * " + "9" * 400,
        "\x00\x01",
        "+".join(["1"] * 3000),
        "x = " + "+".join(["1"] * 3000),
        "1" + "^1" * 3000,
    ])
    def test_never_raises(self, text: str) -> None:
        result = process_document(text)
        assert isinstance(result.results, dict)
        assert isinstance(result.variables, dict)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@pytest.fixture
def logged_project(tmp_path: Path):
    from notecalc.logging.events import reset_sink, set_project_dir

    set_project_dir(tmp_path)
    yield tmp_path
    reset_sink()


def _events(project_dir: Path) -> list[dict]:
    path = project_dir / "logs" / "events.ndjson"
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


class TestEngineEvents:
    def test_evaluate_completed(self, logged_project: Path) -> None:
        evaluate("2 + 2")
        (evt,) = _events(logged_project)
        assert evt["event_type"] == "evaluate_completed"
        assert evt["level"] == "info"
        assert evt["context"]["expression"] == "2 + 2"
        assert evt["context"]["result"] == "4"

    def test_evaluate_failed(self, logged_project: Path) -> None:
        with pytest.raises(DivisionByZeroError):
            evaluate("1/0")
        (evt,) = _events(logged_project)
        assert evt["event_type"] == "evaluate_failed"
        assert evt["level"] == "error"
        assert evt["error_code"] == "division_by_zero"

    def test_document_processed(self, logged_project: Path) -> None:
        process_document("x = 1\ny = x + 1")
        (evt,) = _events(logged_project)
        assert evt["event_type"] == "document_processed"
        assert evt["context"]["converged"] is True
        assert evt["context"]["calculations"] == 2
        run_id = evt["context"]["run_id"]
        assert (logged_project / "logs" / "runs" / f"{run_id}.ndjson").exists()

    def test_document_exhausted(self, logged_project: Path) -> None:
        process_document("a = b + 1\nb = a + 1", max_iterations=2)
        (evt,) = _events(logged_project)
        assert evt["event_type"] == "document_exhausted"
        assert evt["level"] == "warning"
        assert evt["error_code"] == "iteration_budget_exhausted"

    def test_line_errors(self, logged_project: Path) -> None:
        process_document("1/0\nfoo(2)\n3")
        events = _events(logged_project)
        line_events = [e for e in events if e["event_type"] == "line_error"]
        assert [(e["context"]["line"], e["error_code"]) for e in line_events] == [
            (1, "division_by_zero"),
            (2, "unknown_function"),
        ]
        assert events[-1]["event_type"] == "document_processed"
        run_ids = {e["context"]["run_id"] for e in events}
        assert len(run_ids) == 1

    def test_no_sink_no_files(self, tmp_path: Path) -> None:
        process_document("x = 1")
        assert not (tmp_path / "logs").exists()
