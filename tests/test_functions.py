"""Tests for the builtin function table and call resolution."""

from __future__ import annotations

import math

import pytest

from notecalc.formulas import (
    ArgumentError,
    EvaluationError,
    ParseError,
    UnknownFunctionError,
    evaluate_function,
    innermost_calls,
    resolve_calls,
    split_args,
)
from notecalc.functions import get_function, is_function, list_functions


def _no_names(arg: str) -> float:
    """Argument resolver for tests that only pass arithmetic."""
    from notecalc.formulas import evaluate_arithmetic

    return evaluate_arithmetic(arg)


def _call(name: str, *args: str) -> float:
    return evaluate_function(name, list(args), _no_names)


# ────────────────────────────────────────────────────────────────
# Registry
# ────────────────────────────────────────────────────────────────


class TestRegistry:
    def test_builtins_registered(self) -> None:
        names = {spec.name for spec in list_functions()}
        assert {
            "sum", "avg", "average", "min", "max", "round", "pow", "sqrt",
            "abs", "floor", "ceil", "sin", "cos", "tan", "log", "ln",
        } <= names

    def test_list_is_sorted(self) -> None:
        names = [spec.name for spec in list_functions()]
        assert names == sorted(names)

    def test_lookup_is_case_insensitive(self) -> None:
        assert get_function("SUM").name == "sum"
        assert is_function("Max")

    def test_unknown_function(self) -> None:
        with pytest.raises(UnknownFunctionError) as exc_info:
            get_function("foo")
        assert exc_info.value.func_name == "foo"
        assert exc_info.value.kind == "unknown_function"
        assert not is_function("foo")

    def test_signatures(self) -> None:
        assert get_function("round").signature == "round(x[, y])"
        assert get_function("sum").signature == "sum(x, ...)"
        assert get_function("sqrt").signature == "sqrt(x)"

    def test_doc_is_first_docstring_line(self) -> None:
        assert get_function("sqrt").doc == "Square root."


class TestArity:
    def test_variadic_requires_one(self) -> None:
        with pytest.raises(ArgumentError, match="avg requires at least 1 argument, got 0"):
            get_function("avg").check_arity(0)

    def test_exact(self) -> None:
        with pytest.raises(ArgumentError, match="sqrt requires exactly 1 argument, got 2"):
            get_function("sqrt").check_arity(2)

    def test_range(self) -> None:
        with pytest.raises(ArgumentError, match="round requires 1-2 arguments, got 3"):
            get_function("round").check_arity(3)

    def test_accepts_in_range(self) -> None:
        get_function("round").check_arity(1)
        get_function("round").check_arity(2)
        get_function("max").check_arity(20)


# ────────────────────────────────────────────────────────────────
# Builtins
# ────────────────────────────────────────────────────────────────


class TestBuiltins:
    def test_sum(self) -> None:
        assert _call("sum", "1", "2", "3") == 6.0

    def test_sum_is_exact_for_decimals(self) -> None:
        assert _call("sum", "0.1", "0.2", "0.3") == 0.6

    def test_avg_and_alias(self) -> None:
        assert _call("avg", "2", "4") == 3.0
        assert _call("average", "1", "2", "3", "4") == 2.5

    def test_min_max(self) -> None:
        assert _call("min", "3", "-1", "2") == -1.0
        assert _call("max", "3", "-1", "2") == 3.0

    def test_round_half_up(self) -> None:
        assert _call("round", "2.5") == 3.0
        assert _call("round", "3.14159", "2") == 3.14

    def test_pow_defaults_to_square(self) -> None:
        assert _call("pow", "3") == 9.0
        assert _call("pow", "2", "10") == 1024.0

    def test_sqrt(self) -> None:
        assert _call("sqrt", "16") == 4.0

    def test_abs_floor_ceil(self) -> None:
        assert _call("abs", "-5") == 5.0
        assert _call("floor", "2.7") == 2.0
        assert _call("floor", "-2.2") == -3.0
        assert _call("ceil", "2.1") == 3.0

    def test_trig(self) -> None:
        assert _call("sin", "0") == 0.0
        assert _call("cos", "0") == 1.0
        assert _call("tan", "0") == 0.0

    def test_logs(self) -> None:
        assert _call("log", "1000") == pytest.approx(3.0)
        assert _call("ln", str(math.e)) == pytest.approx(1.0)

    def test_argument_expressions_resolved(self) -> None:
        assert _call("max", "1 + 1", "(3 * 2)") == 6.0


class TestBuiltinErrors:
    def test_sqrt_of_negative(self) -> None:
        with pytest.raises(EvaluationError) as exc_info:
            _call("sqrt", "-1")
        assert exc_info.value.kind == "evaluation_error"

    def test_log_of_zero(self) -> None:
        with pytest.raises(EvaluationError):
            _call("ln", "0")

    def test_pow_overflow(self) -> None:
        with pytest.raises(EvaluationError):
            _call("pow", "10", "400")

    def test_empty_argument(self) -> None:
        with pytest.raises(ArgumentError, match="empty argument"):
            _call("max", "1", "")

    def test_non_numeric_argument(self) -> None:
        with pytest.raises(ArgumentError, match="non-numeric argument"):
            _call("sum", "1", "apples")

    def test_division_by_zero_in_argument_propagates(self) -> None:
        from notecalc.formulas import DivisionByZeroError

        with pytest.raises(DivisionByZeroError):
            _call("abs", "1 / 0")


# ────────────────────────────────────────────────────────────────
# Call resolution
# ────────────────────────────────────────────────────────────────


class TestSplitArgs:
    def test_top_level_commas(self) -> None:
        assert split_args("1, (2 + 3), max(4, 5)") == ["1", "(2 + 3)", "max(4, 5)"]

    def test_empty(self) -> None:
        assert split_args("") == []
        assert split_args("   ") == []

    def test_empty_slot_kept(self) -> None:
        assert split_args("1,,2") == ["1", "", "2"]


class TestInnermostCalls:
    def test_only_innermost(self) -> None:
        sites = innermost_calls("avg(min(1,2), max(3,4))")
        assert [s.name for s in sites] == ["min", "max"]
        assert sites[0].args == "1,2"

    def test_grouping_parens_ignored(self) -> None:
        assert innermost_calls("(1 + 2) * 3") == []

    def test_unclosed_call(self) -> None:
        with pytest.raises(ParseError, match="missing '\\)' in call to 'sum'"):
            innermost_calls("sum(1, 2")


class TestResolveCalls:
    def test_nested(self) -> None:
        assert resolve_calls("avg(min(1,2), max(3,4))", _no_names) == "2.5"

    def test_surrounding_arithmetic_kept(self) -> None:
        assert resolve_calls("sum(1,2) * 2", _no_names) == "3 * 2"

    def test_negative_results_parenthesized(self) -> None:
        assert resolve_calls("2 ^ min(-2, 1)", _no_names) == "2 ^ (-2)"

    def test_depth_bound(self) -> None:
        text = "abs(abs(abs(1)))"
        assert resolve_calls(text, _no_names, max_rounds=3) == "1"
        with pytest.raises(EvaluationError, match="nested deeper than 2 levels"):
            resolve_calls(text, _no_names, max_rounds=2)
