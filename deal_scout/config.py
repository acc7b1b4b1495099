"""Configuration loading: defaults, optional YAML file, environment overrides."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from deal_scout.errors import ConfigurationError
from deal_scout.logging_config import get_logger

LOGGER = get_logger(__name__)

API_KEY_ENV = "SCRAPINGBEE_API_KEY"
CONFIG_PATH_ENV = "DEALSCOUT_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.yml")

DEFAULT_CONFIG: dict[str, Any] = {
    "base_url": (
        "https://www.homedepot.com/b/Appliances-Refrigerators-French-Door-Refrigerators/"
        "Special-Buys/N-5yc1vZc3ooZ1z11ao3"
    ),
    "render": {
        "endpoint": "https://app.scrapingbee.com/api/v1/",
        "api_key": "",
        "country_code": "us",
        "premium_proxy": True,
        "stealth_proxy": True,
        "block_resources": False,
        "min_markup_bytes": 1500,
        "block_phrases": [
            "access denied",
            "you don't have permission to access",
            "are you a robot",
            "verify you are a human",
            "pardon our interruption",
            "request unsuccessful",
            "unusual traffic from your computer",
        ],
    },
    "pagination": {
        "max_pages": 10,
        "offset_param": "Nao",
        "retry_attempts": 2,
        "retry_backoff_ms": 10000,
        "page_delay_base_ms": 6000,
        "page_delay_step_ms": 1000,
        "escalation_delays_ms": [10000, 15000],
    },
    "run": {"timeout_s": 1800},
    "output": {
        "json_path": "outputs/scrape.json",
        "csv_path": "outputs/items.csv",
    },
    "health_log": "logs/health.log",
}

_FALSE_VALUES = {"0", "false", "no", "off"}


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _deep_merge(default: Any, override: Any) -> Any:
    if isinstance(default, dict) and isinstance(override, Mapping):
        merged = {key: deepcopy(value) for key, value in default.items()}
        for key, value in override.items():
            merged[key] = _deep_merge(merged.get(key), value) if key in merged else deepcopy(value)
        return merged
    return deepcopy(override) if override is not None else deepcopy(default)


@dataclass(frozen=True)
class RenderSettings:
    """How to talk to the remote rendering service."""

    endpoint: str = DEFAULT_CONFIG["render"]["endpoint"]
    api_key: str = ""
    country_code: str = "us"
    premium_proxy: bool = True
    stealth_proxy: bool = True
    block_resources: bool = False
    min_markup_bytes: int = 1500
    block_phrases: tuple[str, ...] = tuple(DEFAULT_CONFIG["render"]["block_phrases"])

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(f"Rendering service API key not configured (set {API_KEY_ENV})")
        return self.api_key


@dataclass(frozen=True)
class PaginationSettings:
    """Bounds and pacing for multi-page runs."""

    max_pages: int = 10
    offset_param: str = "Nao"
    retry_attempts: int = 2
    retry_backoff_ms: int = 10000
    page_delay_base_ms: int = 6000
    page_delay_step_ms: int = 1000
    escalation_delays_ms: tuple[int, ...] = (10000, 15000)

    def page_delay_ms(self, page_number: int) -> int:
        """Delay applied before fetching *page_number*; grows with every page."""

        return self.page_delay_base_ms + page_number * self.page_delay_step_ms


@dataclass(frozen=True)
class RunSettings:
    timeout_s: float = 1800.0


@dataclass(frozen=True)
class OutputSettings:
    json_path: str | None = None
    csv_path: str | None = None


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_CONFIG["base_url"]
    render: RenderSettings = field(default_factory=RenderSettings)
    pagination: PaginationSettings = field(default_factory=PaginationSettings)
    run: RunSettings = field(default_factory=RunSettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    health_log: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        """Build settings from a (merged) configuration mapping."""

        config = _deep_merge(DEFAULT_CONFIG, data)
        render = config["render"]
        pagination = config["pagination"]

        return cls(
            base_url=str(config["base_url"]),
            render=RenderSettings(
                endpoint=str(render["endpoint"]),
                api_key=str(render.get("api_key") or ""),
                country_code=str(render["country_code"]),
                premium_proxy=_as_bool(render.get("premium_proxy"), True),
                stealth_proxy=_as_bool(render.get("stealth_proxy"), True),
                block_resources=_as_bool(render.get("block_resources"), False),
                min_markup_bytes=int(render["min_markup_bytes"]),
                block_phrases=tuple(str(phrase).lower() for phrase in render["block_phrases"] or ()),
            ),
            pagination=PaginationSettings(
                max_pages=max(1, int(pagination["max_pages"])),
                offset_param=str(pagination["offset_param"]),
                retry_attempts=max(0, int(pagination["retry_attempts"])),
                retry_backoff_ms=max(0, int(pagination["retry_backoff_ms"])),
                page_delay_base_ms=max(0, int(pagination["page_delay_base_ms"])),
                page_delay_step_ms=max(0, int(pagination["page_delay_step_ms"])),
                escalation_delays_ms=tuple(
                    max(0, int(value)) for value in pagination["escalation_delays_ms"] or ()
                ),
            ),
            run=RunSettings(timeout_s=max(0.0, float(config["run"]["timeout_s"] or 0))),
            output=OutputSettings(
                json_path=config["output"].get("json_path") or None,
                csv_path=config["output"].get("csv_path") or None,
            ),
            health_log=config.get("health_log") or None,
        )


def _load_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except FileNotFoundError:
        LOGGER.info("Configuration file %s not found; using defaults", path)
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    pagination = config.setdefault("pagination", {})
    defaults = DEFAULT_CONFIG["pagination"]
    for env_name, key in (
        ("DEALSCOUT_MAX_PAGES", "max_pages"),
        ("DEALSCOUT_RETRY_ATTEMPTS", "retry_attempts"),
        ("DEALSCOUT_PAGE_DELAY_BASE_MS", "page_delay_base_ms"),
        ("DEALSCOUT_PAGE_DELAY_STEP_MS", "page_delay_step_ms"),
    ):
        pagination[key] = _env_int(env_name, int(pagination.get(key, defaults[key])))

    run = config.setdefault("run", {})
    run["timeout_s"] = _env_int("DEALSCOUT_RUN_TIMEOUT_S", int(run.get("timeout_s", 1800)))

    render = config.setdefault("render", {})
    country = os.getenv("DEALSCOUT_COUNTRY_CODE")
    if country:
        render["country_code"] = country.strip()
    api_key = os.getenv(API_KEY_ENV)
    if api_key and api_key.strip():
        render["api_key"] = api_key.strip()
    return config


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from defaults, the YAML file at *path* and the environment."""

    if path is None:
        path = os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    config = _deep_merge(DEFAULT_CONFIG, _load_config_file(Path(path)))
    return Settings.from_mapping(_apply_env_overrides(config))


__all__ = [
    "DEFAULT_CONFIG",
    "OutputSettings",
    "PaginationSettings",
    "RenderSettings",
    "RunSettings",
    "Settings",
    "load_settings",
]
