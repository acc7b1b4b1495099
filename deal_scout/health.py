"""Run health monitoring: flags runs that look throttled or blocked."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time
from pathlib import Path
from typing import Any

from deal_scout.errors import FetchError, FetchFailure


class HealthState(str, Enum):
    """Overall scraper health classification."""

    HEALTHY = "healthy"
    SUSPECT = "suspect"
    BLOCKED = "blocked"


@dataclass
class HealthMonitor:
    """Tracks anomaly counts and logs structured health events.

    When ``log_path`` is ``None`` state is tracked but no events are written.
    """

    run_id: str
    log_path: Path | None = None
    empty_threshold: tuple[int, int] = (2, 4)
    fetch_threshold: tuple[int, int] = (2, 4)
    block_threshold: tuple[int, int] = (1, 2)
    state: HealthState = field(init=False, default=HealthState.HEALTHY)

    def __post_init__(self) -> None:
        self.empty_streak = 0
        self.fetch_errors = 0
        self.blocks = 0
        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _log(self, event_type: str, message: str, **details: Any) -> None:
        if self.log_path is None:
            return
        entry = {
            "ts": time.time(),
            "run_id": self.run_id,
            "state": self.state.value,
            "event": event_type,
            "message": message,
            "details": details,
        }
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def _evaluate_state(self) -> None:
        prev = self.state
        if (
            self.empty_streak >= self.empty_threshold[1]
            or self.fetch_errors >= self.fetch_threshold[1]
            or self.blocks >= self.block_threshold[1]
        ):
            self.state = HealthState.BLOCKED
        elif (
            self.empty_streak >= self.empty_threshold[0]
            or self.fetch_errors >= self.fetch_threshold[0]
            or self.blocks >= self.block_threshold[0]
        ):
            self.state = HealthState.SUSPECT
        else:
            self.state = HealthState.HEALTHY
        if self.state != prev:
            self._log("state_change", f"{prev.value} -> {self.state.value}")

    def record_page(self, page_number: int, item_count: int, url: str) -> None:
        if item_count == 0:
            self.empty_streak += 1
            self._log("empty_page", "page produced no items", page=page_number, url=url)
        else:
            self.empty_streak = 0
        self._evaluate_state()

    def record_fetch_error(self, error: FetchError) -> None:
        if error.reason is FetchFailure.BLOCKED:
            self.blocks += 1
            self._log("blocked", error.message, page=error.page, url=error.url)
        else:
            self.fetch_errors += 1
            self._log(
                "fetch_error",
                error.message,
                page=error.page,
                url=error.url,
                reason=error.reason.value,
                status=error.status_code,
            )
        self._evaluate_state()

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "empty_streak": self.empty_streak,
            "fetch_errors": self.fetch_errors,
            "blocks": self.blocks,
        }


__all__ = ["HealthMonitor", "HealthState"]
