import pytest

from deal_scout.config import DEFAULT_CONFIG, PaginationSettings, Settings, load_settings
from deal_scout.errors import ConfigurationError


def test_defaults_without_file(tmp_path) -> None:
    settings = load_settings(tmp_path / "missing.yml")

    assert settings.base_url == DEFAULT_CONFIG["base_url"]
    assert settings.render.api_key == ""
    assert settings.pagination.max_pages == 10
    assert settings.pagination.offset_param == "Nao"
    assert settings.pagination.escalation_delays_ms == (10000, 15000)
    assert settings.run.timeout_s == 1800


def test_yaml_file_merged_over_defaults(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text(
        "base_url: https://www.homedepot.com/b/Other/N-1\n"
        "render:\n"
        "  country_code: ca\n"
        "  premium_proxy: 'false'\n"
        "pagination:\n"
        "  max_pages: 4\n"
        "  escalation_delays_ms: [1, 2]\n"
        "output:\n"
        "  csv_path: ''\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.base_url == "https://www.homedepot.com/b/Other/N-1"
    assert settings.render.country_code == "ca"
    assert settings.render.premium_proxy is False
    assert settings.render.stealth_proxy is True
    assert settings.pagination.max_pages == 4
    assert settings.pagination.retry_attempts == 2
    assert settings.pagination.escalation_delays_ms == (1, 2)
    assert settings.output.json_path == "outputs/scrape.json"
    assert settings.output.csv_path is None


def test_environment_overrides(tmp_path, monkeypatch) -> None:
    path = tmp_path / "config.yml"
    path.write_text("pagination:\n  max_pages: 4\n", encoding="utf-8")
    monkeypatch.setenv("DEALSCOUT_CONFIG", str(path))
    monkeypatch.setenv("SCRAPINGBEE_API_KEY", " secret ")
    monkeypatch.setenv("DEALSCOUT_MAX_PAGES", "7")
    monkeypatch.setenv("DEALSCOUT_RETRY_ATTEMPTS", "not-a-number")
    monkeypatch.setenv("DEALSCOUT_COUNTRY_CODE", "mx")

    settings = load_settings()

    assert settings.render.api_key == "secret"
    assert settings.render.require_api_key() == "secret"
    assert settings.render.country_code == "mx"
    assert settings.pagination.max_pages == 7
    assert settings.pagination.retry_attempts == 2


def test_non_mapping_file_rejected(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(path)


def test_missing_api_key_raises() -> None:
    with pytest.raises(ConfigurationError):
        Settings.from_mapping({}).render.require_api_key()


def test_page_delay_grows_with_page_number() -> None:
    settings = PaginationSettings(page_delay_base_ms=6000, page_delay_step_ms=1000)
    assert settings.page_delay_ms(2) == 8000
    assert settings.page_delay_ms(5) == 11000
