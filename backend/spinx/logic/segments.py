"""Segment table: the outcomes on the wheel and their draw weights."""
import json
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class GiftKind(str, Enum):
    """Gift categories with ledger side effects; OTHER is cosmetic."""

    FREE_SPIN = "FREE_SPIN"
    BONUS_BADGE = "BONUS_BADGE"
    OTHER = "OTHER"


class Gift(BaseModel):
    """Non-cash prize attached to a segment."""

    model_config = ConfigDict(frozen=True)

    kind: GiftKind
    name: str

    @classmethod
    def free_spin(cls) -> "Gift":
        return cls(kind=GiftKind.FREE_SPIN, name="Free Spin")

    @classmethod
    def bonus_badge(cls) -> "Gift":
        return cls(kind=GiftKind.BONUS_BADGE, name="Gold Badge")

    @classmethod
    def other(cls, name: str) -> "Gift":
        return cls(kind=GiftKind.OTHER, name=name)


class Segment(BaseModel):
    """One weighted outcome on the wheel."""

    model_config = ConfigDict(frozen=True)

    label: str
    cash_value: int = Field(default=0, ge=0)
    gift: Gift | None = None
    weight: int = Field(default=0, ge=0)


DEFAULT_SEGMENTS: tuple[Segment, ...] = (
    Segment(label="Try Again", cash_value=0, weight=12),
    Segment(label="KSh 50", cash_value=50, weight=9),
    Segment(label="Free Spin", gift=Gift.free_spin(), weight=4),
    Segment(label="KSh 1000", cash_value=1000, weight=6),
    Segment(label="Sticker", gift=Gift.other("Sticker Pack"), weight=3),
    Segment(label="KSh 250", cash_value=250, weight=5),
    Segment(label="Try Again", cash_value=0, weight=12),
    Segment(label="KSh 150", cash_value=150, weight=7),
    Segment(label="Gold Badge", gift=Gift.bonus_badge(), weight=2),
    Segment(label="KSh 300", cash_value=300, weight=5),
)


class SegmentTable:
    """
    Read-only list of wheel segments.

    The table is built once per engine and shared by value; there are no
    mutation operations.
    """

    def __init__(self, segments: list[Segment] | tuple[Segment, ...] = DEFAULT_SEGMENTS):
        if not segments:
            raise ValueError("Segment table needs at least one segment")
        self._segments: tuple[Segment, ...] = tuple(segments)
        if self.total_weight() == 0:
            logger.warning(
                "All %d segment weights are zero; draws fall back to uniform",
                len(self._segments),
            )

    @classmethod
    def from_json(cls, raw: str) -> "SegmentTable":
        """Build a table from a JSON list of segment objects."""
        items = json.loads(raw)
        return cls([Segment.model_validate(item) for item in items])

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self):
        return iter(self._segments)

    def total_weight(self) -> int:
        return sum(s.weight for s in self._segments)

    def segment_at(self, index: int) -> Segment:
        if not 0 <= index < len(self._segments):
            raise IndexError(f"Segment index {index} out of range")
        return self._segments[index]

    def to_list(self) -> list[dict]:
        return [s.model_dump(mode="json") for s in self._segments]
