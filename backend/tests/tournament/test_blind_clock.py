"""
Blind Clock Tests.

벽시계 기반 시계 계산, 표시 필드, 틱 루프 테스트.
"""

import asyncio
import itertools
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from hypothesis import given, strategies as st

from tourney.config import Settings
from tourney.tournament.blind_clock import (
    NO_NEXT_ANTE,
    NO_NEXT_BLINDS,
    ClockTicker,
    build_clock_display,
    format_countdown,
    resolve_clock,
    seconds_to_next_break,
)
from tourney.tournament.models import ClockState, StructureItem, TournamentStructure
from tourney.utils.errors import StructureError

START = datetime(2026, 1, 10, 19, 0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def structure() -> TournamentStructure:
    """20분 레벨 - 10분 브레이크 - 20분 레벨."""
    return TournamentStructure(
        items=(
            StructureItem.level(1, 100, 200, duration_minutes=20),
            StructureItem.break_(10),
            StructureItem.level(2, 200, 400, duration_minutes=20, ante=50),
        ),
    )


def at(minutes: float = 0, seconds: float = 0) -> datetime:
    return START + timedelta(minutes=minutes, seconds=seconds)


# =============================================================================
# Unit Tests: resolve_clock
# =============================================================================


class TestResolveClock:
    """시계 상태 계산 테스트."""

    def test_break_after_first_level(self, structure):
        """25분 경과: 브레이크 중, 5분 남음."""
        state = resolve_clock(at(25), START, structure)

        assert state.has_started is True
        assert state.current_index == 1
        assert state.is_break is True
        assert state.seconds_remaining == 300
        assert state.is_finished is False

    def test_first_level(self, structure):
        state = resolve_clock(at(5), START, structure)

        assert state.current_index == 0
        assert state.is_break is False
        assert state.seconds_remaining == 900

    def test_remaining_is_floored(self, structure):
        """남은 시간은 내림 처리."""
        state = resolve_clock(at(5, 0.4), START, structure)

        assert state.seconds_remaining == 899

    def test_exact_boundary_moves_to_next_item(self, structure):
        state = resolve_clock(at(20), START, structure)

        assert state.current_index == 1
        assert state.seconds_remaining == 600

    def test_finished_after_total_duration(self, structure):
        """모든 항목 소진: 종료, 마지막 항목, 0초."""
        state = resolve_clock(at(50), START, structure)

        assert state.is_finished is True
        assert state.current_index == 2
        assert state.seconds_remaining == 0
        assert state.is_break is False

    def test_long_after_finish(self, structure):
        state = resolve_clock(at(60 * 24), START, structure)

        assert state.is_finished is True
        assert state.current_index == 2

    def test_before_start(self, structure):
        """시작 전: 첫 항목 길이 표시."""
        state = resolve_clock(at(-1), START, structure)

        assert state.has_started is False
        assert state.current_index == 0
        assert state.seconds_remaining == 1200

    def test_no_start_time(self, structure):
        state = resolve_clock(at(5), None, structure)

        assert state.has_started is False
        assert state.seconds_remaining == 0

    def test_idempotent(self, structure):
        """같은 now 에 대해 항상 같은 결과."""
        now = at(33, 17)

        assert resolve_clock(now, START, structure) == resolve_clock(now, START, structure)

    @given(elapsed=st.integers(min_value=0, max_value=50 * 60 - 1))
    def test_remaining_within_current_item(self, elapsed):
        structure = TournamentStructure(
            items=(
                StructureItem.level(1, 100, 200, duration_minutes=20),
                StructureItem.break_(10),
                StructureItem.level(2, 200, 400, duration_minutes=20),
            ),
        )
        state = resolve_clock(START + timedelta(seconds=elapsed), START, structure)

        current = structure.items[state.current_index]
        assert 0 < state.seconds_remaining <= current.duration_seconds
        assert state.is_break == current.is_break
        assert not state.is_finished


class TestFallbackLevels:
    """구조 없는 토너먼트: 고정 길이 레벨."""

    def test_fixed_length_levels(self):
        state = resolve_clock(at(35), START, None, fallback_minutes=15)

        assert state.current_index == 2
        assert state.seconds_remaining == 600
        assert state.is_break is False
        assert state.is_finished is False

    def test_default_level_length(self):
        state = resolve_clock(at(25), START, None)

        assert state.current_index == 1
        assert state.seconds_remaining == 900

    def test_empty_structure_uses_fallback(self):
        state = resolve_clock(at(5), START, TournamentStructure(items=()), fallback_minutes=10)

        assert state.current_index == 0
        assert state.seconds_remaining == 300

    def test_zero_duration_never_raises(self):
        state = resolve_clock(at(5), START, None, fallback_minutes=0)

        assert state.seconds_remaining == 0
        assert state.current_index == 0

    def test_before_start_shows_fallback_duration(self):
        state = resolve_clock(at(-10), START, None, fallback_minutes=15)

        assert state.has_started is False
        assert state.seconds_remaining == 900


class TestStructureItem:
    def test_rejects_non_positive_duration(self):
        with pytest.raises(StructureError):
            StructureItem.break_(0)

    def test_rejects_small_blind_above_big_blind(self):
        with pytest.raises(StructureError):
            StructureItem.level(1, 400, 200, duration_minutes=20)

    def test_from_camel_case_dict(self):
        item = StructureItem.from_dict(
            {"type": "Level", "duration": 15, "level": 3, "smallBlind": 300, "bigBlind": 600, "ante": 75}
        )

        assert item.sequence_number == 3
        assert item.blinds_label == "300/600"
        assert item.ante == 75


# =============================================================================
# Unit Tests: display fields
# =============================================================================


class TestClockDisplay:
    """표시 필드 테스트."""

    def test_format_countdown(self):
        assert format_countdown(300) == "05:00"
        assert format_countdown(3725) == "62:05"
        assert format_countdown(-5) == "00:00"

    def test_display_during_level(self, structure):
        display = build_clock_display(resolve_clock(at(5), START, structure), structure)

        assert display.countdown == "15:00"
        assert display.level_number == 1
        assert display.current_blinds == "100/200"
        assert display.current_ante == 0
        assert display.next_blinds == "200/400"
        assert display.next_ante == "50"
        assert display.seconds_to_next_break == 900

    def test_display_during_break(self, structure):
        """브레이크 중: 직전 레벨 블라인드 유지, 레벨 번호 없음."""
        display = build_clock_display(resolve_clock(at(25), START, structure), structure)

        assert display.countdown == "05:00"
        assert display.level_number is None
        assert display.current_blinds == "100/200"
        assert display.next_blinds == "200/400"
        assert display.seconds_to_next_break is None

    def test_display_on_last_level(self, structure):
        display = build_clock_display(resolve_clock(at(35), START, structure), structure)

        assert display.level_number == 2
        assert display.current_ante == 50
        assert display.next_blinds == NO_NEXT_BLINDS
        assert display.next_ante == NO_NEXT_ANTE

    def test_display_when_finished(self, structure):
        display = build_clock_display(resolve_clock(at(90), START, structure), structure)

        assert display.countdown == "00:00"
        assert display.next_blinds == NO_NEXT_BLINDS
        assert display.seconds_to_next_break is None

    def test_display_without_structure(self):
        state = resolve_clock(at(25), START, None, fallback_minutes=20)
        display = build_clock_display(state, None)

        assert display.level_number == 2
        assert display.current_blinds == "-"
        assert display.next_blinds == NO_NEXT_BLINDS
        assert display.next_ante == NO_NEXT_ANTE

    def test_seconds_to_next_break_spans_levels(self):
        structure = TournamentStructure(
            items=(
                StructureItem.level(1, 100, 200, duration_minutes=20),
                StructureItem.level(2, 200, 400, duration_minutes=20),
                StructureItem.break_(15),
            ),
        )
        state = resolve_clock(at(5), START, structure)

        assert seconds_to_next_break(state, structure) == 900 + 1200

    def test_seconds_to_next_break_before_start(self, structure):
        state = resolve_clock(at(-30), START, structure)

        assert seconds_to_next_break(state, structure) == 1200


# =============================================================================
# Unit Tests: ClockTicker
# =============================================================================


class TestClockTicker:
    """주기적 재계산 테스트."""

    @pytest.mark.asyncio
    async def test_tick_emits_only_on_change(self, structure):
        times = iter([at(5), at(5), at(5, 1), at(21)])
        handler = AsyncMock()
        ticker = ClockTicker(
            "tourney-1",
            resolve=lambda now: resolve_clock(now, START, structure),
            handler=handler,
            now_fn=lambda: next(times),
        )

        first = await ticker.tick()
        assert first is not None
        assert await ticker.tick() is None
        await ticker.tick()
        await ticker.tick()

        assert handler.await_count == 3
        level_flags = [call.args[2] for call in handler.await_args_list]
        assert level_flags == [True, False, True]
        assert ticker.last_state.current_index == 1

    @pytest.mark.asyncio
    async def test_handler_receives_tournament_id_and_state(self, structure):
        handler = AsyncMock()
        ticker = ClockTicker(
            "tourney-7",
            resolve=lambda now: resolve_clock(now, START, structure),
            handler=handler,
            now_fn=lambda: at(25),
        )

        await ticker.tick()

        tournament_id, state, level_changed = handler.await_args.args
        assert tournament_id == "tourney-7"
        assert isinstance(state, ClockState)
        assert state.is_break is True
        assert level_changed is True

    @pytest.mark.asyncio
    async def test_loop_survives_handler_errors(self, structure):
        """핸들러 예외는 로그 후 계속 진행."""
        seconds = itertools.count()
        calls = []

        async def handler(tournament_id, state, level_changed):
            calls.append(state)
            if len(calls) == 1:
                raise RuntimeError("display offline")

        ticker = ClockTicker(
            "tourney-1",
            resolve=lambda now: resolve_clock(now, START, structure),
            handler=handler,
            interval_seconds=0.01,
            now_fn=lambda: at(5, next(seconds)),
        )

        ticker.start()
        assert ticker.is_running is True
        await asyncio.sleep(0.1)
        await ticker.stop()

        assert len(calls) >= 2
        assert ticker.is_running is False

    def test_for_tournament_uses_settings(self, structure):
        """틱 간격은 설정값을 따른다."""
        settings = Settings(clock_tick_seconds=0.5, default_blind_level_minutes=15)

        ticker = ClockTicker.for_tournament(
            "tourney-1", START, structure, AsyncMock(), settings=settings
        )

        assert ticker.interval_seconds == 0.5

    @pytest.mark.asyncio
    async def test_for_tournament_fallback_level_length(self):
        """구조가 없으면 설정의 기본 레벨 길이로 계산."""
        settings = Settings(default_blind_level_minutes=15)
        handler = AsyncMock()
        ticker = ClockTicker.for_tournament(
            "tourney-1", START, None, handler, settings=settings,
            now_fn=lambda: at(35),
        )

        state = await ticker.tick()

        assert state.current_index == 2
        assert state.seconds_remaining == 600

    @pytest.mark.asyncio
    async def test_for_tournament_prefers_tournament_level_length(self):
        settings = Settings(default_blind_level_minutes=15)
        ticker = ClockTicker.for_tournament(
            "tourney-1", START, None, AsyncMock(),
            blind_level_minutes=30, settings=settings,
            now_fn=lambda: at(35),
        )

        state = await ticker.tick()

        assert state.current_index == 1
        assert state.seconds_remaining == 1500
