"""Tournament and registration rows."""

from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourney.models.base import Base, TimestampMixin, UUIDMixin, utcnow
from tourney.tournament.models import (
    Registration,
    RegistrationStatus,
    TournamentInfo,
    TournamentStatus,
)


class Tournament(Base, UUIDMixin, TimestampMixin):
    """Tournament metadata."""

    __tablename__ = "tournaments"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Schedule (local wall-clock date and time)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Money
    buy_in: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    fee: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)

    # Snapshot fields from the structure
    max_players: Mapped[int] = mapped_column(default=0, nullable=False)
    rebuy_limit: Mapped[int] = mapped_column(default=0, nullable=False)
    starting_chips: Mapped[int] = mapped_column(default=0, nullable=False)
    blind_level_minutes: Mapped[int | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=TournamentStatus.SCHEDULED.value,
        nullable=False,
        index=True,
    )

    # Linked structures
    structure_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("tournament_structures.id", ondelete="SET NULL"),
        nullable=True,
    )
    payout_structure_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("payout_structures.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    registrations: Mapped[list["TournamentRegistration"]] = relationship(
        "TournamentRegistration",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="(TournamentRegistration.registered_at, TournamentRegistration.id)",
    )

    @property
    def start(self) -> datetime | None:
        if not self.start_date or not self.start_time:
            return None
        return datetime.combine(self.start_date, self.start_time)

    @property
    def status_enum(self) -> TournamentStatus:
        return TournamentStatus(self.status)

    def to_info(self) -> TournamentInfo:
        return TournamentInfo(
            id=self.id,
            name=self.name,
            start=self.start,
            buy_in=Decimal(self.buy_in),
            fee=Decimal(self.fee),
            max_players=self.max_players,
            rebuy_limit=self.rebuy_limit,
            starting_chips=self.starting_chips,
            blind_level_minutes=self.blind_level_minutes,
            status=self.status_enum,
        )

    def __repr__(self) -> str:
        return f"<Tournament {self.id[:8]}... {self.name!r} status={self.status}>"


class TournamentRegistration(Base, UUIDMixin, TimestampMixin):
    """A member's entry in a tournament, with settlement write-back."""

    __tablename__ = "tournament_registrations"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=RegistrationStatus.JOINED.value,
        nullable=False,
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    buy_in_count: Mapped[int] = mapped_column(default=1, nullable=False)
    final_chip_count: Mapped[int] = mapped_column(default=0, nullable=False)

    # Settlement results
    rank: Mapped[int | None] = mapped_column(nullable=True)
    prize: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    tournament: Mapped["Tournament"] = relationship(
        "Tournament", back_populates="registrations"
    )

    def to_registration(self) -> Registration:
        return Registration(
            id=self.id,
            member_id=self.member_id,
            buy_in_count=self.buy_in_count,
            final_chip_count=self.final_chip_count or 0,
            status=RegistrationStatus(self.status),
            registered_at=self.registered_at,
        )
