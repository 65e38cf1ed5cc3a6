"""LogicEvaluator — decides block visibility and goto branching.

Both questions are answered from the block definition and the answers
recorded so far; nothing else is consulted and nothing is mutated:

  - :meth:`LogicEvaluator.is_visible`: should the block be presented?
  - :meth:`LogicEvaluator.evaluate_goto`: does a ``goto`` rule fire, and
    where to?

Malformed input never raises.  A condition that points at an unanswered
block is simply false, an unknown operator is false, and a ``goto`` rule
without a target is skipped.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from formflow_runtime.constants import NEGATIVE_OPERATORS
from formflow_runtime.models.block import Block, Condition, LogicRule
from formflow_runtime.models.payload import BlockAnswer, InteractionPayload

logger = logging.getLogger(__name__)


class LogicEvaluator:
    """Evaluates block logic rules against the answer payload."""

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def is_visible(self, block: Block, answers: Mapping[str, BlockAnswer]) -> bool:
        """Return True if the block should currently be shown.

        A block is hidden when it is disabled, when any of its ``hide``
        rules matches, or when it has ``show`` rules and none of them
        matches.  Groups enclosing the block (``block.ancestors``) gate it
        the same way.
        """
        for group in block.ancestors:
            if not self._is_self_visible(group, answers):
                return False
        return self._is_self_visible(block, answers)

    def _is_self_visible(self, block: Block, answers: Mapping[str, BlockAnswer]) -> bool:
        if block.is_disabled:
            return False

        show_rules: list[LogicRule] = []
        for rule in block.visibility_rules():
            if rule.action == "hide":
                if self._eval_rule(rule, answers):
                    return False
            else:
                show_rules.append(rule)

        if show_rules:
            return any(self._eval_rule(rule, answers) for rule in show_rules)
        return True

    # ------------------------------------------------------------------
    # Goto
    # ------------------------------------------------------------------

    def evaluate_goto(
        self, block: Block, answers: Mapping[str, BlockAnswer]
    ) -> str | None:
        """Evaluate goto rules in order; first match wins.

        Returns:
            The target block id of the first rule whose conditions hold,
            or None to fall through to the next block in sequence.
        """
        for rule in block.goto_rules():
            if not rule.target:
                logger.warning("goto rule %s on block %s has no target, skipping", rule.id, block.id)
                continue
            if self._eval_rule(rule, answers):
                return rule.target
        return None

    # ------------------------------------------------------------------
    # Rule / condition evaluation
    # ------------------------------------------------------------------

    def _eval_rule(self, rule: LogicRule, answers: Mapping[str, BlockAnswer]) -> bool:
        """Fold the rule's conditions left to right using their ``chain``.

        A rule without conditions always holds.
        """
        if not rule.conditions:
            return True

        result = self._eval_condition(rule.conditions[0], answers)
        for cond in rule.conditions[1:]:
            value = self._eval_condition(cond, answers)
            if cond.chain == "or":
                result = result or value
            else:
                result = result and value
        return result

    def _eval_condition(self, cond: Condition, answers: Mapping[str, BlockAnswer]) -> bool:
        """Evaluate a single condition against the recorded answers.

        If the referenced block has not been answered yet, the condition
        evaluates to False.  Sequence answers are tested record by record:
        positive operators need one matching record, negative operators
        need every record to match.
        """
        answer = answers.get(cond.source)
        if answer is None:
            return False

        records = _as_records(answer)
        if cond.interaction is not None:
            records = [r for r in records if r.action_id == cond.interaction]
        if not records:
            return False

        if cond.op == "answered":
            return any(_has_value(r.payload) for r in records)

        checks = (self._compare(cond.op, r.payload, cond.value, r.action_id) for r in records)
        if cond.op in NEGATIVE_OPERATORS:
            return all(checks)
        return any(checks)

    @staticmethod
    def _compare(op: str, answer: Any, value: Any, action_id: str | None = None) -> bool:
        """Apply an operator to one recorded value and an expected value.

        Handles type coercion for numeric comparisons (answers typed into
        inputs arrive as strings).  ``action_id`` lets choice blocks be
        tested by interaction id as well as by label.
        """
        if op == "eq":
            return _same(answer, value) or (action_id is not None and action_id == value)

        if op == "ne":
            return not _same(answer, value) and action_id != value

        # --- Numeric comparisons ---
        if op in ("lt", "le", "gt", "ge", "between"):
            try:
                ans_num = float(answer)
            except (TypeError, ValueError):
                return False

            try:
                if op == "lt":
                    return ans_num < float(value)
                if op == "le":
                    return ans_num <= float(value)
                if op == "gt":
                    return ans_num > float(value)
                if op == "ge":
                    return ans_num >= float(value)
                # value is expected to be [min, max]
                lo, hi = float(value[0]), float(value[1])
                return lo <= ans_num <= hi
            except (TypeError, ValueError, IndexError):
                logger.warning("Invalid operand for %s: %r", op, value)
                return False

        # --- Collection / string membership ---
        if op == "contains":
            return _contains(answer, value, action_id)

        if op == "not_contains":
            return not _contains(answer, value, action_id)

        if op == "contains_any":
            if not isinstance(value, list):
                value = [value]
            return any(_contains(answer, v, action_id) for v in value)

        if op == "contains_all":
            if not isinstance(value, list):
                value = [value]
            return all(_contains(answer, v, action_id) for v in value)

        if op == "matches":
            try:
                return bool(re.search(str(value), str(answer)))
            except re.error:
                logger.warning("Invalid regex in condition: %r", value)
                return False

        logger.warning("Unknown condition operator: %s", op)
        return False


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _as_records(answer: BlockAnswer) -> list[InteractionPayload]:
    if isinstance(answer, list):
        return answer
    return [answer]


def _has_value(value: Any) -> bool:
    return value is not None and value != "" and value != []


def _same(answer: Any, value: Any) -> bool:
    """Equality that treats ``True``/``"true"`` and ``3``/``"3"`` alike."""
    if answer == value:
        return True
    return _canon(answer) == _canon(value)


def _canon(tok: Any) -> str:
    if isinstance(tok, bool):
        return "true" if tok else "false"
    s = str(tok)
    return s.lower() if s.lower() in {"true", "false"} else s


def _contains(answer: Any, value: Any, action_id: str | None) -> bool:
    # Works for "X in list", "substring in string" and "choice X picked"
    if action_id is not None and action_id == value:
        return True
    if isinstance(answer, list):
        return any(_same(item, value) for item in answer)
    if answer is None:
        return False
    return str(value) in str(answer)


# Module-level evaluator for callers that prefer plain functions.
_default = LogicEvaluator()


def is_block_visible(block: Block, answers: Mapping[str, BlockAnswer]) -> bool:
    """Shorthand for :meth:`LogicEvaluator.is_visible`."""
    return _default.is_visible(block, answers)


def evaluate_goto(block: Block, answers: Mapping[str, BlockAnswer]) -> str | None:
    """Shorthand for :meth:`LogicEvaluator.evaluate_goto`."""
    return _default.evaluate_goto(block, answers)
