from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class NoteCategory(str, Enum):
    KEY_POINT = "key_point"
    DECISION = "decision"
    ACTION_ITEM = "action_item"
    RISK = "risk"


class KeyPoint(BaseModel):
    topic: str
    summary: str
    timestamp: str


class Decision(BaseModel):
    decision: str
    rationale: str | None = None
    timestamp: str


class ActionItem(BaseModel):
    task: str
    owner: str | None = None
    deadline: str | None = None
    priority: str | None = None  # "high" | "medium" | "low"


class Risk(BaseModel):
    risk: str
    impact: str | None = None
    mitigation: str | None = None
    timestamp: str


NotePayload = KeyPoint | Decision | ActionItem | Risk

# Batch field name, category and payload model, in application order.
CATEGORY_FIELDS: tuple[tuple[str, NoteCategory, type[BaseModel]], ...] = (
    ("key_points", NoteCategory.KEY_POINT, KeyPoint),
    ("decisions", NoteCategory.DECISION, Decision),
    ("action_items", NoteCategory.ACTION_ITEM, ActionItem),
    ("risks", NoteCategory.RISK, Risk),
)

PAYLOAD_MODELS: dict[NoteCategory, type[BaseModel]] = {
    category: model for _, category, model in CATEGORY_FIELDS
}


class IncrementalNotes(BaseModel):
    """One extraction pass worth of notes, grouped by category."""

    key_points: list[KeyPoint] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "IncrementalNotes":
        return cls()

    def count(self) -> int:
        return (
            len(self.key_points)
            + len(self.decisions)
            + len(self.action_items)
            + len(self.risks)
        )

    def is_empty(self) -> bool:
        return self.count() == 0

    def merge(self, other: "IncrementalNotes") -> None:
        self.key_points.extend(other.key_points)
        self.decisions.extend(other.decisions)
        self.action_items.extend(other.action_items)
        self.risks.extend(other.risks)


class ProvisionalId(BaseModel):
    """Locally synthesized id, always negative."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["provisional"] = "provisional"
    value: int


class AuthoritativeId(BaseModel):
    """Id assigned by the note store."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["authoritative"] = "authoritative"
    value: int


NoteIdentity = ProvisionalId | AuthoritativeId


class NoteItem(BaseModel):
    identity: NoteIdentity = Field(discriminator="kind")
    meeting_id: int
    category: NoteCategory
    payload: NotePayload
    created_at: datetime

    @computed_field
    @property
    def id(self) -> int:
        return self.identity.value

    @property
    def is_provisional(self) -> bool:
        return isinstance(self.identity, ProvisionalId)
