import pytest

from booktalk.config import Settings, load_settings


def test_defaults() -> None:
    settings = Settings()
    assert settings.database.url.startswith("sqlite:")
    assert settings.feed.page_size == 20
    assert settings.app.transport == "stdio"


def test_nested_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOOKTALK_DATABASE__URL", "sqlite:///data/books.sqlite")
    monkeypatch.setenv("BOOKTALK_FEED__PAGE_SIZE", "50")
    monkeypatch.setenv("BOOKTALK_APP__TRANSPORT", "http")

    settings = load_settings()
    assert settings.database.url == "sqlite:///data/books.sqlite"
    assert settings.feed.page_size == 50
    assert settings.app.transport == "http"


def test_app_section_only_carries_used_fields() -> None:
    assert set(Settings().app.model_dump()) == {"name", "port", "log_level", "transport", "host"}
