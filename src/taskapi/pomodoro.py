from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

logger = logging.getLogger("taskapi.pomodoro")


class TimerMode(str, Enum):
    work = "work"
    short_break = "short_break"
    long_break = "long_break"


@dataclass(frozen=True)
class ModeSetting:
    minutes: int
    label: str


TIMER_SETTINGS: Dict[TimerMode, ModeSetting] = {
    TimerMode.work: ModeSetting(25, "Focus Time"),
    TimerMode.short_break: ModeSetting(5, "Short Break"),
    TimerMode.long_break: ModeSetting(15, "Long Break"),
}

# Every LONG_BREAK_EVERY-th finished pomodoro is followed by a long break.
LONG_BREAK_EVERY = 4
MAX_CUSTOM_MINUTES = 120

_JSON_KEYS = {
    "completed_pomodoros": "completedPomodoros",
    "total_focus_time": "totalFocusTime",
    "total_break_time": "totalBreakTime",
}


@dataclass
class PomodoroStats:
    """Lifetime counters; times are in minutes."""

    completed_pomodoros: int = 0
    total_focus_time: int = 0
    total_break_time: int = 0

    def to_json(self) -> Dict[str, int]:
        return {_JSON_KEYS[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_json(cls, data: Dict[str, object]) -> "PomodoroStats":
        values = {}
        for field_name, key in _JSON_KEYS.items():
            raw = data.get(key, 0)
            if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
                raise ValueError(f"{key} must be a non-negative integer")
            values[field_name] = raw
        return cls(**values)


# PUBLIC_INTERFACE
class StatsStore:
    """
    Persists PomodoroStats as a small JSON document.

    A missing or unreadable file loads as zeroed stats so a corrupt file never
    prevents the timer from starting.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> PomodoroStats:
        if not self.path.exists():
            return PomodoroStats()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("stats file must hold a JSON object")
            return PomodoroStats.from_json(data)
        except (OSError, ValueError) as e:
            logger.warning(
                "pomodoro.stats_unreadable",
                extra={"category": "pomodoro", "event": "pomodoro.stats_unreadable", "path": str(self.path), "error": str(e)},
            )
            return PomodoroStats()

    def save(self, stats: PomodoroStats) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(stats.to_json()), encoding="utf-8")


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins:02d}:{secs:02d}"


def format_hours(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


# PUBLIC_INTERFACE
class PomodoroTimer:
    """
    Work/break countdown driven by an external one-second tick.

    When the countdown reaches zero while running the timer stops, records
    the finished interval in its stats (persisted through `stats_store` when
    given), calls `on_complete` with the finished mode and moves on to the
    next mode: a break after work (long every fourth pomodoro), work after a
    break.
    """

    def __init__(
        self,
        stats_store: Optional[StatsStore] = None,
        on_complete: Optional[Callable[[TimerMode], None]] = None,
    ) -> None:
        self._stats_store = stats_store
        self._on_complete = on_complete
        self.stats = stats_store.load() if stats_store else PomodoroStats()
        self.pomodoro_count = 0
        self.running = False
        # A run() loop only ticks while its generation is current.
        self._generation = 0
        self.mode = TimerMode.work
        self._duration = self._mode_seconds(self.mode)
        self.time_left = self._duration

    @staticmethod
    def _mode_seconds(mode: TimerMode) -> int:
        return TIMER_SETTINGS[mode].minutes * 60

    @property
    def label(self) -> str:
        return TIMER_SETTINGS[self.mode].label

    @property
    def progress(self) -> float:
        """Percent of the current countdown already elapsed."""
        if self._duration <= 0:
            return 0.0
        elapsed = self._duration - self.time_left
        return min(max(elapsed / self._duration * 100, 0.0), 100.0)

    def format_time(self) -> str:
        return format_time(self.time_left)

    def toggle(self) -> bool:
        self._generation += 1
        self.running = not self.running
        return self.running

    def reset(self) -> None:
        self._generation += 1
        self.running = False
        self._duration = self._mode_seconds(self.mode)
        self.time_left = self._duration

    def switch_mode(self, mode: TimerMode) -> None:
        self.mode = TimerMode(mode)
        self.reset()

    def set_custom_minutes(self, minutes: int) -> bool:
        """Stop and restart the countdown at `minutes` (1..120); other values are ignored."""
        if not (0 < minutes <= MAX_CUSTOM_MINUTES):
            return False
        self._generation += 1
        self.running = False
        self._duration = minutes * 60
        self.time_left = self._duration
        return True

    def tick(self, seconds: int = 1) -> None:
        if not self.running or self.time_left <= 0:
            return
        self.time_left = max(self.time_left - seconds, 0)
        if self.time_left == 0:
            self._complete()

    async def run(self, interval: float = 1.0) -> None:
        """
        Tick every `interval` seconds until the timer is stopped.

        Any state change (toggle, reset, mode switch) or a newer run() call
        ends this loop before its next tick.
        """
        self._generation += 1
        generation = self._generation
        while self.running and generation == self._generation:
            await asyncio.sleep(interval)
            if generation != self._generation:
                return
            self.tick()

    def reset_stats(self) -> None:
        self.stats = PomodoroStats()
        self.pomodoro_count = 0
        self._persist()

    def _complete(self) -> None:
        finished = self.mode
        self.running = False
        minutes = TIMER_SETTINGS[finished].minutes

        if finished is TimerMode.work:
            self.stats.completed_pomodoros += 1
            self.stats.total_focus_time += minutes
            self.pomodoro_count += 1
            if self.pomodoro_count % LONG_BREAK_EVERY == 0:
                next_mode = TimerMode.long_break
            else:
                next_mode = TimerMode.short_break
        else:
            self.stats.total_break_time += minutes
            next_mode = TimerMode.work

        self._persist()
        logger.info(
            "pomodoro.complete",
            extra={"category": "pomodoro", "event": "pomodoro.complete", "mode": finished.value},
        )
        if self._on_complete is not None:
            self._on_complete(finished)
        self.switch_mode(next_mode)

    def _persist(self) -> None:
        if self._stats_store is not None:
            self._stats_store.save(self.stats)
