"""LogicEvaluator unit tests — operators, visibility and goto resolution.

Tests every condition operator, single-record vs sequence answers,
condition chaining, show/hide/disabled visibility, group gating and the
first-match-wins goto policy.

Operator reference (from evaluator._compare):
    eq, ne              — equality / inequality (also matches actionId)
    lt, le, gt, ge      — numeric comparisons (auto-coerces strings to float)
    between             — inclusive range check, value = [lo, hi]
    contains            — element (list), substring (str) or choice membership
    not_contains        — inverse of contains
    contains_any        — any of value items contained
    contains_all        — all of value items contained
    matches             — regex match (re.search)
    answered            — the source block has a non-empty answer
"""

import pytest

from formflow_runtime.evaluator import LogicEvaluator, evaluate_goto, is_block_visible
from formflow_runtime.models.payload import InteractionPayload
from formflow_runtime.queue import build_queue

from helpers.builders import block, cond, goto, group, hide, show


def _rec(action_id, payload):
    return InteractionPayload(action_id=action_id, payload=payload)


def _holds(evaluator, condition, answers):
    return evaluator._eval_condition(condition, answers)


@pytest.fixture
def evaluator():
    """Fresh LogicEvaluator for each test."""
    return LogicEvaluator()


# =====================================================================
# Condition operators on single-record answers
# =====================================================================


class TestConditionOperators:
    """One test per operator against a scalar answer."""

    def test_eq(self, evaluator):
        """eq compares the recorded value."""
        answers = {"q1": _rec("q1_input", "yes")}
        assert _holds(evaluator, cond("q1", "eq", "yes"), answers) is True
        assert _holds(evaluator, cond("q1", "eq", "no"), answers) is False

    def test_eq_matches_action_id(self, evaluator):
        """eq also matches the chosen interaction id."""
        answers = {"q1": _rec("opt_a", "Option A")}
        assert _holds(evaluator, cond("q1", "eq", "opt_a"), answers) is True

    def test_eq_normalises_booleans_and_numbers(self, evaluator):
        """True equals "true" and 3 equals "3"."""
        assert _holds(evaluator, cond("q1", "eq", "true"), {"q1": _rec("c", True)}) is True
        assert _holds(evaluator, cond("q1", "eq", 3), {"q1": _rec("n", "3")}) is True

    def test_ne(self, evaluator):
        answers = {"q1": _rec("q1_input", "no")}
        assert _holds(evaluator, cond("q1", "ne", "yes"), answers) is True
        assert _holds(evaluator, cond("q1", "ne", "no"), answers) is False

    def test_numeric_comparisons(self, evaluator):
        """lt/le/gt/ge coerce string answers to numbers."""
        answers = {"q1": _rec("q1_input", "10")}
        assert _holds(evaluator, cond("q1", "lt", 11), answers) is True
        assert _holds(evaluator, cond("q1", "lt", 10), answers) is False
        assert _holds(evaluator, cond("q1", "le", 10), answers) is True
        assert _holds(evaluator, cond("q1", "gt", 9), answers) is True
        assert _holds(evaluator, cond("q1", "gt", 10), answers) is False
        assert _holds(evaluator, cond("q1", "ge", 10), answers) is True

    def test_numeric_comparison_with_non_numeric_answer(self, evaluator):
        """A non-numeric answer makes numeric operators false."""
        answers = {"q1": _rec("q1_input", "ten")}
        assert _holds(evaluator, cond("q1", "gt", 1), answers) is False

    def test_between(self, evaluator):
        """between is inclusive on both ends."""
        c = cond("q1", "between", [5, 10])
        assert _holds(evaluator, c, {"q1": _rec("i", 5)}) is True, "lo boundary"
        assert _holds(evaluator, c, {"q1": _rec("i", 10)}) is True, "hi boundary"
        assert _holds(evaluator, c, {"q1": _rec("i", 11)}) is False

    def test_between_with_malformed_operand(self, evaluator):
        """A malformed range degrades to False instead of raising."""
        assert _holds(evaluator, cond("q1", "between", [5]), {"q1": _rec("i", 7)}) is False

    def test_contains_substring(self, evaluator):
        answers = {"q1": _rec("q1_input", "the app crashes")}
        assert _holds(evaluator, cond("q1", "contains", "crash"), answers) is True
        assert _holds(evaluator, cond("q1", "not_contains", "crash"), answers) is False

    def test_contains_any_and_all(self, evaluator):
        answers = {"q1": _rec("q1_input", "red and blue")}
        assert _holds(evaluator, cond("q1", "contains_any", ["green", "blue"]), answers) is True
        assert _holds(evaluator, cond("q1", "contains_all", ["red", "blue"]), answers) is True
        assert _holds(evaluator, cond("q1", "contains_all", ["red", "green"]), answers) is False

    def test_matches(self, evaluator):
        answers = {"q1": _rec("q1_input", "ada@example.com")}
        assert _holds(evaluator, cond("q1", "matches", r"@example\.com$"), answers) is True
        assert _holds(evaluator, cond("q1", "matches", r"^bob"), answers) is False

    def test_matches_with_invalid_regex(self, evaluator):
        assert _holds(evaluator, cond("q1", "matches", "("), {"q1": _rec("i", "x")}) is False

    def test_answered(self, evaluator):
        """answered is true for any non-empty value."""
        assert _holds(evaluator, cond("q1", "answered"), {"q1": _rec("i", "x")}) is True
        assert _holds(evaluator, cond("q1", "answered"), {"q1": _rec("i", "")}) is False


# =====================================================================
# Unanswered sources and sequence answers
# =====================================================================


class TestAnswerShapes:
    """Conditions work the same for single records and sequences."""

    @pytest.mark.parametrize("op", ["eq", "ne", "contains", "not_contains", "gt", "answered"])
    def test_unanswered_source_is_false(self, evaluator, op):
        """A condition on a block absent from the payload is false, never raises."""
        assert _holds(evaluator, cond("missing", op, "x"), {}) is False

    def test_contains_choice_in_sequence(self, evaluator):
        """contains checks membership across every record of a sequence."""
        answers = {"q1": [_rec("opt_a", "A"), _rec("opt_c", "C")]}
        assert _holds(evaluator, cond("q1", "contains", "opt_c"), answers) is True
        assert _holds(evaluator, cond("q1", "contains", "opt_b"), answers) is False

    def test_eq_on_sequence_matches_any_record(self, evaluator):
        answers = {"q1": [_rec("opt_a", "A"), _rec("opt_c", "C")]}
        assert _holds(evaluator, cond("q1", "eq", "C"), answers) is True

    def test_negative_operators_need_every_record(self, evaluator):
        """ne / not_contains hold only if no record matches."""
        answers = {"q1": [_rec("opt_a", "A"), _rec("opt_c", "C")]}
        assert _holds(evaluator, cond("q1", "ne", "A"), answers) is False
        assert _holds(evaluator, cond("q1", "ne", "B"), answers) is True
        assert _holds(evaluator, cond("q1", "not_contains", "opt_c"), answers) is False

    def test_empty_sequence_is_false(self, evaluator):
        assert _holds(evaluator, cond("q1", "ne", "A"), {"q1": []}) is False

    def test_interaction_narrows_records(self, evaluator):
        """With ``interaction`` set only that interaction's record is tested."""
        answers = {"q1": [_rec("opt_a", "x"), _rec("opt_b", "y")]}
        assert _holds(evaluator, cond("q1", "eq", "y", interaction="opt_b"), answers) is True
        assert _holds(evaluator, cond("q1", "eq", "x", interaction="opt_b"), answers) is False
        assert _holds(evaluator, cond("q1", "answered", interaction="opt_z"), answers) is False


# =====================================================================
# Rule chaining
# =====================================================================


class TestRuleChaining:
    """Conditions fold left to right using their chain operator."""

    def test_and_chain(self, evaluator):
        answers = {"a": _rec("i", "1"), "b": _rec("i", "2")}
        rule = goto("t", cond("a", "eq", "1"), cond("b", "eq", "3"))
        assert evaluator._eval_rule(rule, answers) is False

    def test_or_chain(self, evaluator):
        answers = {"a": _rec("i", "1"), "b": _rec("i", "2")}
        rule = goto("t", cond("a", "eq", "9"), cond("b", "eq", "2", chain="or"))
        assert evaluator._eval_rule(rule, answers) is True

    def test_rule_without_conditions_holds(self, evaluator):
        assert evaluator._eval_rule(goto("t"), {}) is True


# =====================================================================
# Visibility
# =====================================================================


class TestVisibility:
    """isVisible: disabled, hide rules, show rules, group gating."""

    def test_plain_block_is_visible(self, evaluator):
        assert evaluator.is_visible(block("q1"), {}) is True

    def test_disabled_block_is_hidden(self, evaluator):
        assert evaluator.is_visible(block("q1", is_disabled=True), {}) is False

    def test_show_rule_requires_match(self, evaluator):
        """"Only show if q1 answered yes" is hidden until q1 says yes."""
        b = block("q2", logics=[show(cond("q1", "eq", "yes"))])
        assert evaluator.is_visible(b, {}) is False, "Unanswered source hides"
        assert evaluator.is_visible(b, {"q1": _rec("i", "no")}) is False
        assert evaluator.is_visible(b, {"q1": _rec("i", "yes")}) is True

    def test_hide_rule_wins(self, evaluator):
        b = block(
            "q2",
            logics=[show(cond("q1", "answered")), hide(cond("q1", "eq", "skip"))],
        )
        assert evaluator.is_visible(b, {"q1": _rec("i", "skip")}) is False
        assert evaluator.is_visible(b, {"q1": _rec("i", "keep")}) is True

    def test_group_rules_gate_children(self, evaluator):
        """A hidden group hides every block queued from it."""
        g = group(
            "g", children=[block("child")],
            logics=[show(cond("q1", "eq", "yes"))],
        )
        (child,) = build_queue([g])
        assert evaluator.is_visible(child, {}) is False
        assert evaluator.is_visible(child, {"q1": _rec("i", "yes")}) is True

    def test_module_level_shorthand(self):
        assert is_block_visible(block("q1"), {}) is True


# =====================================================================
# Goto
# =====================================================================


class TestEvaluateGoto:
    """evaluateGoto: first matching rule wins, else None."""

    def test_no_rules_falls_through(self, evaluator):
        assert evaluator.evaluate_goto(block("q1"), {}) is None

    def test_first_match_wins(self, evaluator):
        """With two matching rules the first rule's target is returned."""
        b = block("q1", logics=[
            goto("T1", cond("q1", "answered")),
            goto("T2", cond("q1", "eq", "x")),
        ])
        assert evaluator.evaluate_goto(b, {"q1": _rec("i", "x")}) == "T1"

    def test_later_rule_fires_when_earlier_does_not(self, evaluator):
        b = block("q1", logics=[
            goto("T1", cond("q1", "eq", "nope")),
            goto("T2", cond("q1", "eq", "x")),
        ])
        assert evaluator.evaluate_goto(b, {"q1": _rec("i", "x")}) == "T2"

    def test_rule_without_target_is_skipped(self, evaluator):
        b = block("q1", logics=[goto(None, cond("q1", "answered")), goto("T2")])
        assert evaluator.evaluate_goto(b, {"q1": _rec("i", "x")}) == "T2"

    def test_visibility_rules_do_not_jump(self, evaluator):
        b = block("q1", logics=[show(), hide(cond("q9", "answered"))])
        assert evaluate_goto(b, {}) is None
