"""Block, interaction and logic models for conversational storyboards.

A storyboard is an ordered tree of blocks:

  Interactive (the respondent answers them):
    - short, long, email, phone, link, number, secret: text-like inputs
    - file: one or more uploaded files
    - checkbox: pick several choices (answer is a sequence of records)
    - radio: pick one choice
    - consent, rating, scale, date

  Non-interactive:
    - none: a plain message, shown but never answered
    - group: a container whose children are spliced into the queue

Branching lives in ``logics``: ``goto`` rules jump to another block after
the block is answered, ``show``/``hide`` rules decide whether the block is
presented at all.
"""

from __future__ import annotations

import enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from formflow_runtime.constants import MULTI_SELECT_TYPES, NON_INTERACTIVE_TYPES


class BlockType(str, enum.Enum):
    """Closed set of block types an author can place in a storyboard."""

    NONE = "none"
    SHORT = "short"
    LONG = "long"
    EMAIL = "email"
    PHONE = "phone"
    LINK = "link"
    NUMBER = "number"
    SECRET = "secret"
    FILE = "file"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    CONSENT = "consent"
    RATING = "rating"
    SCALE = "scale"
    DATE = "date"
    GROUP = "group"


class InteractionType(str, enum.Enum):
    """UI control family used to answer a block."""

    INPUT = "input"
    TEXTAREA = "textarea"
    FILE = "file"
    BUTTON = "button"
    CONSENT = "consent"
    RANGE = "range"
    DATE = "date"


# Maps block type → the interaction control that answers it.  Types missing
# here (none, group) have no response action.
INTERACTION_TYPES: dict[BlockType, InteractionType] = {
    BlockType.SHORT: InteractionType.INPUT,
    BlockType.EMAIL: InteractionType.INPUT,
    BlockType.PHONE: InteractionType.INPUT,
    BlockType.LINK: InteractionType.INPUT,
    BlockType.NUMBER: InteractionType.INPUT,
    BlockType.SECRET: InteractionType.INPUT,
    BlockType.LONG: InteractionType.TEXTAREA,
    BlockType.FILE: InteractionType.FILE,
    BlockType.CHECKBOX: InteractionType.BUTTON,
    BlockType.RADIO: InteractionType.BUTTON,
    BlockType.CONSENT: InteractionType.CONSENT,
    BlockType.RATING: InteractionType.RANGE,
    BlockType.SCALE: InteractionType.RANGE,
    BlockType.DATE: InteractionType.DATE,
}


class Interaction(BaseModel):
    """One answerable element of a block (a choice, or the single input)."""

    id: str
    label: Optional[str] = None
    sequence: int = 0
    is_disabled: bool = False
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_required(self) -> bool:
        return bool(self.options.get("required"))


# --- Logic models ---

class Condition(BaseModel):
    """A single test against the recorded answer of another block.

    Operators:
      - eq, ne: equality / inequality
      - lt, le, gt, ge: numeric comparisons
      - between: value is [min, max] inclusive
      - contains, not_contains: element / substring / choice membership
      - contains_any, contains_all: set membership
      - matches: regex match
      - answered: the source block has a recorded answer (value ignored)

    ``chain`` combines this condition with the result of the conditions
    before it, left to right.  It is ignored on the first condition.
    """

    source: str
    interaction: Optional[str] = None
    op: Literal[
        "eq", "ne", "contains", "not_contains", "matches",
        "contains_any", "contains_all",
        "lt", "le", "gt", "ge", "between", "answered",
    ]
    value: Any = None
    chain: Literal["and", "or"] = "and"


class LogicRule(BaseModel):
    """A branch rule attached to a block.

    ``goto`` rules jump to ``target`` when their conditions hold; ``show``
    and ``hide`` rules gate the visibility of the block they belong to.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    action: Literal["goto", "show", "hide"] = "goto"
    conditions: List[Condition] = Field(default_factory=list)
    target: Optional[str] = None


# --- Block ---

class Block(BaseModel):
    """A node of the storyboard (question, message or group)."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str
    type: BlockType = BlockType.NONE
    title: Optional[str] = None
    message: Optional[str] = None
    is_required: bool = False
    is_disabled: bool = False
    options: dict[str, Any] = Field(default_factory=dict)
    interactions: List[Interaction] = Field(default_factory=list)
    logics: List[LogicRule] = Field(default_factory=list)
    sequence: int = 0
    parent_block: Optional[str] = None
    # Nested form of group membership; equivalent to parent_block references
    children: List[Block] = Field(default_factory=list)
    # Enclosing groups, outermost first.  Filled in by the queue builder.
    ancestors: List[Block] = Field(default_factory=list, exclude=True)

    @property
    def is_group(self) -> bool:
        return self.type == BlockType.GROUP.value

    @property
    def has_response_action(self) -> bool:
        """False for messages and groups, which are never answered."""
        return self.type not in NON_INTERACTIVE_TYPES

    @property
    def is_multi_select(self) -> bool:
        """True if answers are recorded as a sequence of records."""
        return self.type in MULTI_SELECT_TYPES

    @property
    def interaction_type(self) -> InteractionType | None:
        return INTERACTION_TYPES.get(BlockType(self.type))

    @property
    def active_interactions(self) -> list[Interaction]:
        """Enabled interactions in authoring order."""
        return sorted(
            (i for i in self.interactions if not i.is_disabled),
            key=lambda i: i.sequence,
        )

    def goto_rules(self) -> list[LogicRule]:
        return [rule for rule in self.logics if rule.action == "goto"]

    def visibility_rules(self) -> list[LogicRule]:
        return [rule for rule in self.logics if rule.action in ("show", "hide")]
