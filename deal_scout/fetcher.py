"""Page fetching through a remote JS-rendering proxy service.

One call to :meth:`RenderClient.fetch` issues exactly one request. Retrying
is the caller's job; failures are classified and raised as
:class:`~deal_scout.errors.FetchError`.
"""

from __future__ import annotations

import asyncio
import json
import random
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import requests

from deal_scout import selectors
from deal_scout.config import RenderSettings
from deal_scout.errors import FetchError, FetchFailure
from deal_scout.logging_config import get_logger

LOGGER = get_logger(__name__)

_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/123.0.0.0 Safari/537.36",
)
# Extra seconds on top of the service-side timeout before the HTTP client gives up.
_CLIENT_TIMEOUT_SLACK_S = 10


class PatienceLevel(str, Enum):
    """How long the renderer is asked to wait and scroll before returning."""

    STANDARD = "standard"
    PAGINATION = "pagination"
    EXTENDED = "extended"
    ULTRA = "ultra"


@dataclass(frozen=True)
class FetchStrategy:
    """Rendering instructions for one fetch attempt."""

    level: PatienceLevel
    initial_wait_ms: int
    wait_for: str
    wait_network_idle: bool
    scenario: tuple[dict[str, int], ...]
    timeout_ms: int

    def js_scenario(self) -> str:
        return json.dumps({"instructions": list(self.scenario)}, separators=(",", ":"))


def _scroll_scenario(
    settle_ms: int,
    depths: tuple[int, ...],
    pause_ms: int,
    tail_ms: int = 0,
) -> tuple[dict[str, int], ...]:
    steps: list[dict[str, int]] = [{"wait": settle_ms}]
    for depth in depths:
        steps.append({"scroll_y": depth})
        steps.append({"wait": pause_ms})
    if tail_ms:
        steps.append({"wait": tail_ms})
    return tuple(steps)


STRATEGIES: dict[PatienceLevel, FetchStrategy] = {
    PatienceLevel.STANDARD: FetchStrategy(
        level=PatienceLevel.STANDARD,
        initial_wait_ms=8000,
        wait_for=selectors.WAIT_FOR_FIRST_PAGE,
        wait_network_idle=False,
        scenario=_scroll_scenario(4000, (1200, 2400, 0), 1500),
        timeout_ms=120000,
    ),
    PatienceLevel.PAGINATION: FetchStrategy(
        level=PatienceLevel.PAGINATION,
        initial_wait_ms=12000,
        wait_for=selectors.WAIT_FOR_PAGINATION,
        wait_network_idle=True,
        scenario=_scroll_scenario(7000, (800, 1600, 2400, 3200, 4000, 2000, 0), 2000, 3000),
        timeout_ms=120000,
    ),
    PatienceLevel.EXTENDED: FetchStrategy(
        level=PatienceLevel.EXTENDED,
        initial_wait_ms=15000,
        wait_for=selectors.WAIT_FOR_ANY,
        wait_network_idle=True,
        scenario=_scroll_scenario(8000, (1000, 2000, 3000, 4000, 5000, 2500, 1500, 500), 2500, 5000),
        timeout_ms=150000,
    ),
    PatienceLevel.ULTRA: FetchStrategy(
        level=PatienceLevel.ULTRA,
        initial_wait_ms=20000,
        wait_for=selectors.WAIT_FOR_ANY,
        wait_network_idle=True,
        scenario=_scroll_scenario(
            10000, (1000, 2000, 3000, 4000, 5000, 6000, 3000, 1500, 500, 0), 3000, 10000
        ),
        timeout_ms=180000,
    ),
}

ESCALATION_LEVELS: tuple[PatienceLevel, ...] = (PatienceLevel.EXTENDED, PatienceLevel.ULTRA)


def strategy_for(level: PatienceLevel | str) -> FetchStrategy:
    return STRATEGIES[PatienceLevel(level)]


@dataclass(frozen=True)
class RenderedPage:
    """Markup returned by one successful fetch."""

    url: str
    markup: str
    status_code: int
    level: PatienceLevel


class PageFetcher(Protocol):
    async def fetch(
        self, target: str, strategy: FetchStrategy, *, page: int | None = None
    ) -> RenderedPage: ...


class RenderClient:
    """Client for a ScrapingBee-compatible rendering API."""

    def __init__(
        self,
        settings: RenderSettings,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = settings.require_api_key()
        self._settings = settings
        self._session = session or requests.Session()

    def build_params(self, target: str, strategy: FetchStrategy) -> dict[str, str]:
        settings = self._settings
        params = {
            "api_key": self._api_key,
            "url": target,
            "render_js": "true",
            "stealth_proxy": str(settings.stealth_proxy).lower(),
            "premium_proxy": str(settings.premium_proxy).lower(),
            "country_code": settings.country_code,
            "block_resources": str(settings.block_resources).lower(),
            "timeout": str(strategy.timeout_ms),
            "wait": str(strategy.initial_wait_ms),
            "wait_for": strategy.wait_for,
            "js_scenario": strategy.js_scenario(),
        }
        if strategy.wait_network_idle:
            params["wait_browser"] = "networkidle"
        return params

    def fetch_sync(
        self, target: str, strategy: FetchStrategy, *, page: int | None = None
    ) -> RenderedPage:
        """Issue one blocking render request and classify the outcome."""

        params = self.build_params(target, strategy)
        headers = {"User-Agent": random.choice(_USER_AGENTS)}
        timeout = strategy.timeout_ms / 1000 + _CLIENT_TIMEOUT_SLACK_S
        LOGGER.debug("Render request | page=%s level=%s url=%s", page, strategy.level.value, target)

        try:
            response = self._session.get(
                self._settings.endpoint, params=params, headers=headers, timeout=timeout
            )
        except requests.Timeout as exc:
            raise FetchError(
                "Render request timed out", reason=FetchFailure.TIMEOUT, url=target, page=page
            ) from exc
        except requests.RequestException as exc:
            raise FetchError(
                f"Render request failed: {exc}", reason=FetchFailure.NETWORK, url=target, page=page
            ) from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise FetchError(
                f"Render API error: {status} {response.reason or ''}".strip(),
                reason=FetchFailure.HTTP_STATUS,
                status_code=status,
                url=target,
                page=page,
            )

        markup = response.text or ""
        self.validate_markup(markup, url=target, page=page, status_code=status)
        return RenderedPage(url=target, markup=markup, status_code=status, level=strategy.level)

    def validate_markup(
        self,
        markup: str,
        *,
        url: str | None = None,
        page: int | None = None,
        status_code: int | None = None,
    ) -> None:
        """Raise :class:`FetchError` for implausibly short or bot-blocked markup."""

        size = len(markup.encode("utf-8"))
        if size < self._settings.min_markup_bytes:
            raise FetchError(
                f"Markup too short ({size} bytes)",
                reason=FetchFailure.TOO_SHORT,
                status_code=status_code,
                url=url,
                page=page,
            )
        lowered = markup.lower()
        for phrase in self._settings.block_phrases:
            if phrase and phrase.lower() in lowered:
                raise FetchError(
                    f"Bot block detected ({phrase!r})",
                    reason=FetchFailure.BLOCKED,
                    status_code=status_code,
                    url=url,
                    page=page,
                )

    async def fetch(
        self, target: str, strategy: FetchStrategy, *, page: int | None = None
    ) -> RenderedPage:
        return await asyncio.to_thread(self.fetch_sync, target, strategy, page=page)

    def close(self) -> None:
        self._session.close()


__all__ = [
    "ESCALATION_LEVELS",
    "FetchStrategy",
    "PageFetcher",
    "PatienceLevel",
    "RenderClient",
    "RenderedPage",
    "STRATEGIES",
    "strategy_for",
]
