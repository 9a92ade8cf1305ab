"""
Blind Clock - wall-clock based tournament clock.

벽시계 시간과 블라인드 구조만으로 현재 레벨/브레이크와 남은 시간을 계산.

핵심 설계:
─────────────────────────────────────────────────────────────────────────────────

1. 단일 진실 원천 (Single Source of Truth):
   - 저장된 카운트다운 없음. 시작 시각 + 구조 + 현재 시각으로 매번 재계산
   - 새로고침/서버 재시작 후에도 같은 결과

2. 순수 함수:
   - resolve_clock(now, start, structure) 은 같은 now 에 대해 항상 같은 결과
   - 틱마다 재계산 (기본 1초)

3. 구조 없음 대응:
   - 고정 길이 레벨 (blind_level_minutes) 로 대체, 예외를 던지지 않음

─────────────────────────────────────────────────────────────────────────────────
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from tourney.config import Settings, get_settings
from tourney.logging_config import get_logger
from .models import ClockState, StructureItem, TournamentStructure

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────────
# 상수 정의
# ─────────────────────────────────────────────────────────────────────────────────

# 구조가 없는 토너먼트의 기본 레벨 길이 (분)
DEFAULT_LEVEL_MINUTES = 20

NO_NEXT_BLINDS = "-/-"
NO_NEXT_ANTE = "-"


# ─────────────────────────────────────────────────────────────────────────────────
# Resolver
# ─────────────────────────────────────────────────────────────────────────────────


def resolve_clock(
    now: datetime,
    start: Optional[datetime],
    structure: Optional[TournamentStructure],
    fallback_minutes: Optional[float] = None,
) -> ClockState:
    """Derive the clock state at ``now``.

    Args:
        now: Current wall-clock time
        start: Tournament start (same timezone convention as ``now``)
        structure: Blind structure, or None for fixed-length levels
        fallback_minutes: Level length when there is no structure

    Returns:
        ClockState for ``now``
    """
    items = structure.items if structure else ()
    level_minutes = fallback_minutes if fallback_minutes is not None else DEFAULT_LEVEL_MINUTES

    if start is None:
        return ClockState(
            has_started=False,
            current_index=0,
            seconds_remaining=0,
            is_break=False,
            is_finished=False,
        )

    elapsed = (now - start).total_seconds()

    # 1. 시작 전
    if elapsed < 0:
        first_duration = items[0].duration_seconds if items else level_minutes * 60
        return ClockState(
            has_started=False,
            current_index=0,
            seconds_remaining=max(0, math.floor(first_duration)),
            is_break=False,
            is_finished=False,
        )

    # 2. 구조 기반 계산
    if items:
        remainder = elapsed
        for index, item in enumerate(items):
            duration = item.duration_seconds
            if remainder < duration:
                return ClockState(
                    has_started=True,
                    current_index=index,
                    seconds_remaining=max(0, math.floor(duration - remainder)),
                    is_break=item.is_break,
                    is_finished=False,
                )
            remainder -= duration

        # 모든 항목 소진 -> 종료, 마지막 항목에 머무름
        return ClockState(
            has_started=True,
            current_index=len(items) - 1,
            seconds_remaining=0,
            is_break=False,
            is_finished=True,
        )

    # 3. 구조 없음: 고정 길이 레벨
    duration = level_minutes * 60
    if duration <= 0:
        return ClockState(
            has_started=True,
            current_index=0,
            seconds_remaining=0,
            is_break=False,
            is_finished=False,
        )

    return ClockState(
        has_started=True,
        current_index=int(elapsed // duration),
        seconds_remaining=max(0, math.floor(duration - (elapsed % duration))),
        is_break=False,
        is_finished=False,
    )


# ─────────────────────────────────────────────────────────────────────────────────
# Display fields
# ─────────────────────────────────────────────────────────────────────────────────


def format_countdown(seconds: int) -> str:
    """Format seconds as ``MM:SS`` (minutes are not wrapped at 60)."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass(frozen=True)
class ClockDisplay:
    """Fields a clock renderer consumes."""

    countdown: str
    level_number: Optional[int]
    current_blinds: str
    current_ante: int
    next_blinds: str
    next_ante: str
    seconds_to_next_break: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "countdown": self.countdown,
            "level_number": self.level_number,
            "current_blinds": self.current_blinds,
            "current_ante": self.current_ante,
            "next_blinds": self.next_blinds,
            "next_ante": self.next_ante,
            "seconds_to_next_break": self.seconds_to_next_break,
        }


def _level_in_effect(items, index: int) -> Optional[StructureItem]:
    """Level at ``index``, or the last level before it during a break."""
    for item in reversed(items[: index + 1]):
        if not item.is_break:
            return item
    return None


def _next_level(items, index: int) -> Optional[StructureItem]:
    for item in items[index + 1:]:
        if not item.is_break:
            return item
    return None


def seconds_to_next_break(
    state: ClockState, structure: Optional[TournamentStructure]
) -> Optional[int]:
    """Seconds until the next break starts, or None if no break follows.

    Before the start this is measured from the tournament start.
    """
    if not structure or not structure.items or state.is_finished:
        return None

    items = structure.items
    total = state.seconds_remaining
    for item in items[state.current_index + 1:]:
        if item.is_break:
            return total
        total += math.floor(item.duration_seconds)
    return None


def build_clock_display(
    state: ClockState,
    structure: Optional[TournamentStructure],
    fallback_blinds: str = "-",
) -> ClockDisplay:
    """Build renderer fields from a resolved clock state."""
    if not structure or not structure.items:
        return ClockDisplay(
            countdown=format_countdown(state.seconds_remaining),
            level_number=state.current_index + 1 if state.has_started else 1,
            current_blinds=fallback_blinds,
            current_ante=0,
            next_blinds=NO_NEXT_BLINDS,
            next_ante=NO_NEXT_ANTE,
            seconds_to_next_break=None,
        )

    items = structure.items
    current = _level_in_effect(items, state.current_index)
    upcoming = _next_level(items, state.current_index)
    current_item = items[state.current_index]

    return ClockDisplay(
        countdown=format_countdown(state.seconds_remaining),
        level_number=None if current_item.is_break else current_item.sequence_number,
        current_blinds=current.blinds_label if current else fallback_blinds,
        current_ante=(current.ante or 0) if current else 0,
        next_blinds=upcoming.blinds_label if upcoming else NO_NEXT_BLINDS,
        next_ante=str(upcoming.ante or 0) if upcoming else NO_NEXT_ANTE,
        seconds_to_next_break=seconds_to_next_break(state, structure),
    )


# ─────────────────────────────────────────────────────────────────────────────────
# Ticker
# ─────────────────────────────────────────────────────────────────────────────────

# async def handler(tournament_id, state, level_changed) -> None
ClockHandler = Callable[[str, ClockState, bool], Awaitable[None]]


class ClockTicker:
    """주기적으로 시계를 재계산하여 핸들러에 전달.

    카운트다운을 보관하지 않는다. 변경 감지를 위해 마지막으로 전달한
    ClockState 만 기억한다.

    사용 예:
    ```python
    ticker = ClockTicker(
        tournament_id,
        resolve=lambda now: resolve_clock(now, start, structure),
        handler=display.push,
    )
    ticker.start()
    ...
    await ticker.stop()
    ```
    """

    def __init__(
        self,
        tournament_id: str,
        resolve: Callable[[datetime], ClockState],
        handler: ClockHandler,
        interval_seconds: float = 1.0,
        now_fn: Callable[[], datetime] = datetime.now,
    ):
        self.tournament_id = tournament_id
        self.interval_seconds = interval_seconds
        self._resolve = resolve
        self._handler = handler
        self._now = now_fn
        self._last_state: Optional[ClockState] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @classmethod
    def for_tournament(
        cls,
        tournament_id: str,
        start: Optional[datetime],
        structure: Optional[TournamentStructure],
        handler: ClockHandler,
        blind_level_minutes: Optional[float] = None,
        settings: Optional[Settings] = None,
        now_fn: Callable[[], datetime] = datetime.now,
    ) -> "ClockTicker":
        """설정값(틱 간격, 기본 레벨 길이)으로 티커 생성."""
        settings = settings or get_settings()
        fallback_minutes = blind_level_minutes or settings.default_blind_level_minutes
        return cls(
            tournament_id,
            resolve=lambda now: resolve_clock(now, start, structure, fallback_minutes),
            handler=handler,
            interval_seconds=settings.clock_tick_seconds,
            now_fn=now_fn,
        )

    @property
    def last_state(self) -> Optional[ClockState]:
        return self._last_state

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the tick loop on the running event loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(
            self._loop(), name=f"clock_ticker_{self.tournament_id}"
        )
        logger.info("clock_ticker_started", tournament_id=self.tournament_id)

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("clock_ticker_stopped", tournament_id=self.tournament_id)

    async def tick(self) -> Optional[ClockState]:
        """Recompute once; emit and return the state if it changed."""
        state = self._resolve(self._now())
        if state == self._last_state:
            return None

        previous = self._last_state
        level_changed = (
            previous is None
            or previous.current_index != state.current_index
            or previous.is_finished != state.is_finished
            or previous.has_started != state.has_started
        )
        self._last_state = state
        await self._handler(self.tournament_id, state, level_changed)
        return state

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "clock_tick_failed",
                    tournament_id=self.tournament_id,
                    error=str(e),
                )
            await asyncio.sleep(self.interval_seconds)
