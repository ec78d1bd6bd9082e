from __future__ import annotations

from support_session.config import Settings


def test_session_cookie_comes_from_environment(monkeypatch):
    monkeypatch.setenv("SUPPORT_SESSION_COOKIE", "abc123")
    monkeypatch.setenv("SESSION_COOKIE_NAME", "SESSION")

    s = Settings(_env_file=None)

    assert s.SUPPORT_SESSION_COOKIE == "abc123"
    assert s.SESSION_COOKIE_NAME == "SESSION"


def test_session_cookie_is_read_from_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SUPPORT_SESSION_COOKIE", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("SUPPORT_SESSION_COOKIE=from-dotenv\n")

    s = Settings(_env_file=env_file)

    assert s.SUPPORT_SESSION_COOKIE == "from-dotenv"
    assert s.SESSION_COOKIE_NAME == "JSESSIONID"
