"""
Tournament Data Models.

Immutable value types consumed by the clock resolver and the payout engine.
Persistence rows (tourney.models) convert themselves into these types.
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple

from tourney.utils.errors import StructureError, PayoutError, InvalidTournamentStatus


class TournamentStatus(str, Enum):
    """Tournament lifecycle states."""

    SCHEDULED = "Scheduled"
    REGISTRATION = "Registration"  # 접수 중
    IN_PROGRESS = "In Progress"  # 진행 중
    COMPLETED = "Completed"  # 완료 (종료 상태)
    CANCELLED = "Cancelled"  # 취소 (종료 상태)

    @property
    def is_terminal(self) -> bool:
        return self in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)

    def can_transition(self, target: "TournamentStatus") -> bool:
        """Whether ``self -> target`` is a legal lifecycle move."""
        if self.is_terminal:
            return False
        if target is TournamentStatus.CANCELLED:
            return True
        return target in _FORWARD_TRANSITIONS.get(self, ())


_FORWARD_TRANSITIONS: Dict[TournamentStatus, Tuple[TournamentStatus, ...]] = {
    TournamentStatus.SCHEDULED: (TournamentStatus.REGISTRATION,),
    TournamentStatus.REGISTRATION: (TournamentStatus.IN_PROGRESS,),
    TournamentStatus.IN_PROGRESS: (TournamentStatus.COMPLETED,),
}


def transition_status(
    current: TournamentStatus, target: TournamentStatus
) -> TournamentStatus:
    """Validate a status change and return the new status."""
    if not current.can_transition(target):
        raise InvalidTournamentStatus(
            f"Cannot move tournament from {current.value} to {target.value}",
            current=current.value,
            expected=target.value,
        )
    return target


class StructureItemKind(str, Enum):
    LEVEL = "Level"
    BREAK = "Break"


class RegistrationStatus(str, Enum):
    RESERVED = "Reserved"
    JOINED = "Joined"
    CANCELLED = "Cancelled"


class AllocationKind(str, Enum):
    """Distribution model of one slice of the prize pool."""

    ICM = "ICM"
    CHIP_EV = "ChipEV"
    CUSTOM_MATRIX = "CustomMatrix"


# ─────────────────────────────────────────────────────────────────────────────────
# Blind structure
# ─────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StructureItem:
    """One entry of a blind structure: a level or a break.

    Blind fields are only set on levels. Use :meth:`level` and
    :meth:`break_` to build validated items.
    """

    kind: StructureItemKind
    duration_minutes: float
    sequence_number: Optional[int] = None
    small_blind: Optional[int] = None
    big_blind: Optional[int] = None
    ante: Optional[int] = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise StructureError(
                "Structure item duration must be positive",
                details={"duration_minutes": self.duration_minutes},
            )
        if self.kind is StructureItemKind.LEVEL:
            if self.small_blind is None or self.big_blind is None:
                raise StructureError("Level requires small and big blinds")
            if self.small_blind < 0 or self.small_blind > self.big_blind:
                raise StructureError(
                    "Level blinds must satisfy 0 <= small_blind <= big_blind",
                    details={
                        "small_blind": self.small_blind,
                        "big_blind": self.big_blind,
                    },
                )
            if self.ante is not None and self.ante < 0:
                raise StructureError("Ante cannot be negative", details={"ante": self.ante})

    @classmethod
    def level(
        cls,
        sequence_number: int,
        small_blind: int,
        big_blind: int,
        duration_minutes: float,
        ante: int = 0,
    ) -> "StructureItem":
        return cls(
            kind=StructureItemKind.LEVEL,
            duration_minutes=duration_minutes,
            sequence_number=sequence_number,
            small_blind=small_blind,
            big_blind=big_blind,
            ante=ante,
        )

    @classmethod
    def break_(cls, duration_minutes: float) -> "StructureItem":
        return cls(kind=StructureItemKind.BREAK, duration_minutes=duration_minutes)

    @property
    def is_break(self) -> bool:
        return self.kind is StructureItemKind.BREAK

    @property
    def duration_seconds(self) -> float:
        return self.duration_minutes * 60

    @property
    def blinds_label(self) -> Optional[str]:
        if self.is_break:
            return None
        return f"{self.small_blind}/{self.big_blind}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructureItem":
        """Build from the stored JSON shape (``type``/``duration``/``level``...)."""
        kind = StructureItemKind(data.get("type", data.get("kind", "Level")))
        duration = data.get("duration", data.get("duration_minutes"))
        if kind is StructureItemKind.BREAK:
            return cls.break_(duration)
        return cls.level(
            sequence_number=data.get("level", data.get("sequence_number")),
            small_blind=data.get("smallBlind", data.get("small_blind")),
            big_blind=data.get("bigBlind", data.get("big_blind")),
            duration_minutes=duration,
            ante=data.get("ante") or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind.value,
            "duration": self.duration_minutes,
        }
        if not self.is_break:
            data.update(
                {
                    "level": self.sequence_number,
                    "small_blind": self.small_blind,
                    "big_blind": self.big_blind,
                    "ante": self.ante,
                }
            )
        return data


@dataclass(frozen=True)
class TournamentStructure:
    """Ordered blind structure; immutable reference during a run."""

    items: Tuple[StructureItem, ...]
    id: str = ""
    name: str = ""
    starting_chips: int = 0
    rebuy_limit: int = 0
    last_rebuy_level: int = 0

    @property
    def levels(self) -> List[StructureItem]:
        return [item for item in self.items if not item.is_break]

    @property
    def total_duration_seconds(self) -> float:
        return sum(item.duration_seconds for item in self.items)


@dataclass(frozen=True)
class ClockState:
    """Derived clock state. Recomputed from wall time, never stored."""

    has_started: bool
    current_index: int
    seconds_remaining: int
    is_break: bool
    is_finished: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_started": self.has_started,
            "current_index": self.current_index,
            "seconds_remaining": self.seconds_remaining,
            "is_break": self.is_break,
            "is_finished": self.is_finished,
        }


# ─────────────────────────────────────────────────────────────────────────────────
# Payout structure
# ─────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PayoutRule:
    """Rank-based percentages for a band of player counts."""

    min_players: int
    max_players: int
    places_paid: int
    percentages: Tuple[float, ...]

    def matches(self, player_count: int) -> bool:
        return self.min_players <= player_count <= self.max_players

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayoutRule":
        percentages = tuple(float(p) for p in data.get("percentages", ()))
        return cls(
            min_players=int(data.get("minPlayers", data.get("min_players", 0))),
            max_players=int(data.get("maxPlayers", data.get("max_players", 0))),
            places_paid=int(
                data.get("placesPaid", data.get("places_paid", len(percentages)))
            ),
            percentages=percentages,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_players": self.min_players,
            "max_players": self.max_players,
            "places_paid": self.places_paid,
            "percentages": list(self.percentages),
        }


@dataclass(frozen=True)
class PayoutAllocation:
    """A weighted slice of the prize pool (e.g. 95% main, 5% high hand)."""

    kind: AllocationKind
    percent_of_pool: float
    rules: Tuple[PayoutRule, ...] = ()
    name: str = ""

    def __post_init__(self):
        if self.percent_of_pool < 0:
            raise PayoutError(
                "Allocation share cannot be negative",
                details={"percent_of_pool": self.percent_of_pool},
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayoutAllocation":
        raw_kind = data.get("type", data.get("kind"))
        # 기존 데이터는 "Custom" 으로 저장되어 있음
        kind = AllocationKind.CUSTOM_MATRIX if raw_kind == "Custom" else AllocationKind(raw_kind)
        return cls(
            kind=kind,
            percent_of_pool=float(data.get("percent", data.get("percent_of_pool", 100))),
            rules=tuple(PayoutRule.from_dict(r) for r in data.get("rules") or ()),
            name=data.get("name", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "percent_of_pool": self.percent_of_pool,
            "rules": [r.to_dict() for r in self.rules],
            "name": self.name,
        }


@dataclass(frozen=True)
class PayoutStructure:
    """One or more weighted allocations."""

    allocations: Tuple[PayoutAllocation, ...]
    id: str = ""
    name: str = ""


# ─────────────────────────────────────────────────────────────────────────────────
# Settlement inputs / outputs
# ─────────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TournamentInfo:
    """Tournament metadata snapshot consumed by the engine."""

    id: str
    name: str = "Tournament"
    start: Optional[datetime] = None
    buy_in: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")
    max_players: int = 0
    rebuy_limit: int = 0
    starting_chips: int = 0
    blind_level_minutes: Optional[int] = None
    status: TournamentStatus = TournamentStatus.SCHEDULED


@dataclass(frozen=True)
class Registration:
    """A player's entry in a tournament."""

    id: str
    member_id: str
    buy_in_count: int = 1
    final_chip_count: int = 0
    status: RegistrationStatus = RegistrationStatus.JOINED
    registered_at: Optional[datetime] = None

    def __post_init__(self):
        if self.buy_in_count < 0 or self.final_chip_count < 0:
            raise PayoutError(
                "Buy-in count and final chip count cannot be negative",
                details={
                    "registration_id": self.id,
                    "buy_in_count": self.buy_in_count,
                    "final_chip_count": self.final_chip_count,
                },
            )

    @property
    def is_cancelled(self) -> bool:
        return self.status is RegistrationStatus.CANCELLED


@dataclass(frozen=True)
class ChipBalance:
    """Chip reconciliation result."""

    chips_issued: int
    chips_counted: int

    @property
    def difference(self) -> int:
        return self.chips_issued - self.chips_counted

    @property
    def is_balanced(self) -> bool:
        return self.difference == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chips_issued": self.chips_issued,
            "chips_counted": self.chips_counted,
            "difference": self.difference,
            "is_balanced": self.is_balanced,
        }


@dataclass(frozen=True)
class SettlementResult:
    """정산 결과 (registration 단위)."""

    registration_id: str
    member_id: str
    rank: int
    prize: Decimal
    final_chip_count: int = 0
    percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registration_id": self.registration_id,
            "member_id": self.member_id,
            "rank": self.rank,
            "prize": self.prize,
            "final_chip_count": self.final_chip_count,
            "percentage": self.percentage,
        }


@dataclass
class SettlementSummary:
    """정산 요약."""

    tournament_id: str
    total_prize_pool: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    ledger_entries_created: int = 0
    results: List[SettlementResult] = field(default_factory=list)
    settled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "total_prize_pool": self.total_prize_pool,
            "total_paid": self.total_paid,
            "ledger_entries_created": self.ledger_entries_created,
            "results": [r.to_dict() for r in self.results],
            "settled_at": self.settled_at.isoformat(),
        }
