"""Reading-progress gate for the rules agreement form.

The form stays locked until every rules section has been scrolled past.
A section counts as read once its bottom edge rises above 70% of the
viewport height, so sections taller than the window still complete.

State per session:
  - completed   ordinals of the sections read so far (only ever grows)
  - unlocked    True iff completed covers 1..N, flipped exactly once
  - signed      the N+1 "signature" pseudo-step, display only

The unlock flag lives in the session store for the rest of the session.
On restore a set flag is trusted as-is: every section is reported
completed without looking at scroll positions again.

Scroll handling is split in two:
  - is_read_predicate()   pure geometry, no DOM, no I/O
  - ScrollThrottle        coalesces scroll bursts into one evaluation per
                          frame; ScrollTracker wires it to a gate
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Protocol

from rulesgate.middleware.exceptions import UnknownSectionError
from rulesgate.stores.base import SessionFlagStore

logger = logging.getLogger("rulesgate.progress")

READ_THRESHOLD = 0.7
FRAME_INTERVAL = 1 / 60  # seconds, one display refresh


# ── Data structures ────────────────────────────────────────────


@dataclass(frozen=True)
class Section:
    id: str
    ordinal: int


def build_sections(section_ids: Iterable[str]) -> tuple[Section, ...]:
    """Number section ids 1..N in the order given."""
    sections = tuple(Section(id=sid, ordinal=i) for i, sid in enumerate(section_ids, start=1))
    if not sections:
        raise ValueError("At least one section is required")
    if len({s.id for s in sections}) != len(sections):
        raise ValueError("Section ids must be unique")
    return sections


@dataclass
class ProgressState:
    total: int
    completed: set[int] = field(default_factory=set)
    unlocked: bool = False
    signed: bool = False

    @property
    def active_step(self) -> int | None:
        """Stepper highlight: first unfinished step, N+1 being the signature."""
        if self.signed:
            return None
        for ordinal in range(1, self.total + 1):
            if ordinal not in self.completed:
                return ordinal
        return self.total + 1


class Bounds(Protocol):
    bottom: float


def is_read_predicate(
    element_bounds: Bounds,
    viewport_height: float,
    threshold: float = READ_THRESHOLD,
) -> bool:
    """True once the section's bottom edge is above `threshold` of the viewport."""
    return element_bounds.bottom < viewport_height * threshold


# ── Gate ───────────────────────────────────────────────────────


class ProgressGate:
    """One form's progress gate, bound to a session id.

    Construct once per form lifecycle (per request on the server), then
    call restore() before anything else.
    """

    def __init__(
        self,
        sections: Iterable[Section],
        session_id: str,
        store: SessionFlagStore,
        on_section_completed: Callable[[int], None] | None = None,
    ):
        self.sections = tuple(sections)
        self.session_id = session_id
        self._store = store
        self._by_id = {s.id: s for s in self.sections}
        self._all = frozenset(s.ordinal for s in self.sections)
        self._listeners: list[Callable[[int], None]] = []
        if on_section_completed is not None:
            self._listeners.append(on_section_completed)
        self.state = ProgressState(total=len(self.sections))

    @property
    def unlocked(self) -> bool:
        return self.state.unlocked

    def add_listener(self, callback: Callable[[int], None]) -> None:
        self._listeners.append(callback)

    async def restore(self) -> ProgressState:
        if await self._store.is_unlocked(self.session_id):
            logger.debug("Session %s already unlocked, skipping scroll checks", self.session_id)
            self.state.completed = set(self._all)
            self.state.unlocked = True
        else:
            stored = await self._store.completed(self.session_id)
            self.state.completed = stored & self._all
        self.state.signed = await self._store.is_signed(self.session_id)
        return self.state

    async def observe(self, section_id: str, is_read: bool) -> None:
        section = self._by_id.get(section_id)
        if section is None:
            raise UnknownSectionError(section_id)
        if not is_read or section.ordinal in self.state.completed:
            return

        self.state.completed.add(section.ordinal)
        await self._store.add_completed(self.session_id, section.ordinal)
        logger.info("Step %d completed: %s", section.ordinal, section.id)
        for callback in self._listeners:
            callback(section.ordinal)

    async def observe_frame(self, readings: Iterable[tuple[str, bool]]) -> list[int]:
        """Apply one frame's readings, then try to unlock.

        Returns the ordinals that completed during this frame.
        """
        newly: list[int] = []
        self.add_listener(newly.append)
        try:
            for section_id, is_read in readings:
                await self.observe(section_id, is_read)
        finally:
            self._listeners.remove(newly.append)
        await self.try_unlock()
        return newly

    async def try_unlock(self) -> bool:
        if self.state.unlocked:
            return True
        if not self._all <= self.state.completed:
            return False

        self.state.unlocked = True
        await self._store.mark_unlocked(self.session_id)
        logger.info("Agreement form unlocked for session %s", self.session_id)
        return True

    async def mark_final_step(self) -> None:
        self.state.signed = True
        await self._store.mark_signed(self.session_id)


# ── Frame throttling ───────────────────────────────────────────


Scheduler = Callable[[Callable[[], None], float], object]


def _call_later(callback: Callable[[], None], delay: float) -> object:
    return asyncio.get_running_loop().call_later(delay, callback)


class ScrollThrottle:
    """Run `evaluate` at most once per frame, however many scroll events arrive.

    The first scroll event of a frame schedules one evaluation; events that
    arrive before it has finished are dropped.
    """

    def __init__(
        self,
        evaluate: Callable[[], Awaitable[None]],
        schedule: Scheduler = _call_later,
        frame_interval: float = FRAME_INTERVAL,
    ):
        self._evaluate = evaluate
        self._schedule = schedule
        self.frame_interval = frame_interval
        self._ticking = False
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._ticking

    def on_scroll(self) -> bool:
        """Returns True if this event scheduled an evaluation."""
        if self._ticking:
            return False
        self._ticking = True
        self._schedule(self._fire, self.frame_interval)
        return True

    def _fire(self) -> None:
        self._task = asyncio.ensure_future(self._run())
        self._task.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scroll evaluation failed: %s", exc, exc_info=exc)

    async def _run(self) -> None:
        try:
            await self._evaluate()
        finally:
            self._ticking = False

    async def wait(self) -> None:
        """Wait for the evaluation currently running, if any."""
        if self._task is not None:
            await self._task


class ScrollTracker:
    """Feeds a gate from element bounds on throttled frame ticks."""

    def __init__(
        self,
        gate: ProgressGate,
        bounds_for: Callable[[str], Bounds | None],
        viewport_height: Callable[[], float],
        threshold: float = READ_THRESHOLD,
        schedule: Scheduler = _call_later,
    ):
        self.gate = gate
        self._bounds_for = bounds_for
        self._viewport_height = viewport_height
        self.threshold = threshold
        self.throttle = ScrollThrottle(self.evaluate, schedule=schedule)

    def on_scroll(self) -> bool:
        return self.throttle.on_scroll()

    async def evaluate(self) -> list[int]:
        height = self._viewport_height()
        readings = []
        for section in self.gate.sections:
            bounds = self._bounds_for(section.id)
            if bounds is None:
                logger.error("Section element not found: %s", section.id)
                continue
            readings.append((section.id, is_read_predicate(bounds, height, self.threshold)))
        return await self.gate.observe_frame(readings)
