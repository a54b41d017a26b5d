from playpulse.config import Settings


def test_plex_history_url():
    settings = Settings(plex_url="http://example.test:32400/", plex_token="abc123")
    assert settings.plex_history_url == "http://example.test:32400/status/sessions/history/all"


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("PLEX_URL", "http://media.local:32400")
    monkeypatch.setenv("HISTORY_LIMIT", "250")
    settings = Settings()
    assert settings.plex_history_url == "http://media.local:32400/status/sessions/history/all"
    assert settings.history_limit == 250


def test_database_path_resolved_creates_parent(tmp_path):
    settings = Settings(database_path=str(tmp_path / "nested" / "history.db"))
    path = settings.database_path_resolved
    assert path.parent.is_dir()
    assert path.name == "history.db"
