"""Shared fixtures: file-backed sqlite database and tournament seeding."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from tourney.config import Settings
from tourney.models import (
    Base,
    PayoutStructureRecord,
    StructureRecord,
    Tournament,
    TournamentRegistration,
)
from tourney.tournament.models import RegistrationStatus, TournamentStatus
from tourney.utils.db import create_engine


# =============================================================================
# Test Settings
# =============================================================================


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Test-specific settings."""
    return Settings(
        app_env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tourney_test.db'}",
        payout_rounding_unit=Decimal("1"),
        icm_max_players=9,
        strict_payout_validation=False,
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def test_engine(test_settings: Settings):
    """Fresh database with all tables for each test."""
    engine = create_engine(test_settings.database_url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session used by the code under test."""
    async with session_factory() as session:
        yield session


# =============================================================================
# Seed Data
# =============================================================================

BLIND_STRUCTURE_ITEMS = [
    {"type": "Level", "duration": 20, "level": 1, "small_blind": 100, "big_blind": 200, "ante": 0},
    {"type": "Break", "duration": 10},
    {"type": "Level", "duration": 20, "level": 2, "small_blind": 200, "big_blind": 400, "ante": 50},
]

MAIN_POT_ALLOCATIONS = [
    {
        "name": "Main Pot",
        "type": "CustomMatrix",
        "percent": 100,
        "rules": [
            {"min_players": 2, "max_players": 10, "places_paid": 3, "percentages": [50, 30, 20]},
        ],
    },
]

SeedTournament = Callable[..., Awaitable[dict[str, Any]]]


@pytest.fixture
def seed_tournament(session_factory) -> SeedTournament:
    """Insert a tournament with registrations and return the generated ids.

    Registrations are created in the order of ``chips`` with increasing
    ``registered_at``.
    """

    async def _seed(
        chips: list[int],
        *,
        name: str = "Friday Deepstack",
        buy_in: Decimal = Decimal("100"),
        starting_chips: int = 10000,
        buy_in_counts: list[int] | None = None,
        cancelled: tuple[int, ...] = (),
        status: TournamentStatus = TournamentStatus.IN_PROGRESS,
        allocations: list[dict] | None = MAIN_POT_ALLOCATIONS,
        structure_items: list[dict] | None = BLIND_STRUCTURE_ITEMS,
        start: datetime | None = datetime(2026, 1, 10, 19, 0),
        blind_level_minutes: int | None = None,
        member_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        async with session_factory() as session:
            structure = None
            if structure_items is not None:
                structure = StructureRecord(
                    name="Deepstack 20m", starting_chips=starting_chips, items=structure_items
                )
                session.add(structure)

            payout = None
            if allocations is not None:
                payout = PayoutStructureRecord(name="Standard", allocations=allocations)
                session.add(payout)

            await session.flush()

            tournament = Tournament(
                name=name,
                start_date=start.date() if start else None,
                start_time=start.time() if start else None,
                buy_in=buy_in,
                starting_chips=starting_chips,
                blind_level_minutes=blind_level_minutes,
                status=status.value,
                structure_id=structure.id if structure else None,
                payout_structure_id=payout.id if payout else None,
            )
            session.add(tournament)
            await session.flush()

            registered_at = datetime(2026, 1, 10, 18, 0)
            counts = buy_in_counts or [1] * len(chips)
            registration_ids = []
            seeded_members = []
            for index, (chip_count, count) in enumerate(zip(chips, counts)):
                member_id = member_ids[index] if member_ids else f"member-{index + 1}"
                registration = TournamentRegistration(
                    tournament_id=tournament.id,
                    member_id=member_id,
                    buy_in_count=count,
                    final_chip_count=chip_count,
                    registered_at=registered_at + timedelta(minutes=index),
                    status=(
                        RegistrationStatus.CANCELLED.value
                        if index in cancelled
                        else RegistrationStatus.JOINED.value
                    ),
                )
                session.add(registration)
                await session.flush()
                registration_ids.append(registration.id)
                seeded_members.append(member_id)

            await session.commit()

            return {
                "tournament_id": tournament.id,
                "registration_ids": registration_ids,
                "member_ids": seeded_members,
            }

    return _seed

