from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mailcount.core.config import AppSettings, GmailSettings, OAuthSettings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GMAIL_SCOPES", "GMAIL_PAGE_SIZE", "OAUTH_CALLBACK_PORT"):
        monkeypatch.delenv(name, raising=False)

    gmail = GmailSettings()
    oauth = OAuthSettings()

    assert gmail.scopes == ("https://www.googleapis.com/auth/gmail.readonly",)
    assert gmail.page_size == 500
    assert gmail.identity == "user"
    assert (oauth.callback_port, oauth.callback_port_attempts) == (8888, 3)
    assert oauth.refresh_margin_seconds == 300


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GMAIL_SCOPES", "scope-a, scope-b ,")
    monkeypatch.setenv("GMAIL_TOKENS_DIRECTORY", str(tmp_path))
    monkeypatch.setenv("OAUTH_CALLBACK_PORT", "9000")
    monkeypatch.setenv("OAUTH_OPEN_BROWSER", "false")
    monkeypatch.setenv("COUNT_CACHE_TTL_SECONDS", "0")

    settings = AppSettings()

    assert settings.gmail.scopes == ("scope-a", "scope-b")
    assert settings.gmail.tokens_directory == tmp_path
    assert settings.oauth.callback_port == 9000
    assert settings.oauth.open_browser is False
    assert settings.count_cache_ttl_seconds == 0


def test_page_size_is_bounded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GMAIL_PAGE_SIZE", "501")

    with pytest.raises(ValidationError):
        GmailSettings()
