from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    plex_url: str = "http://localhost:32400"
    plex_token: str = ""
    database_path: str = "./data/playpulse.db"
    dashboard_port: int = 8086
    history_limit: int = 5000
    sample_event_count: int = 800
    sample_span_days: int = 400

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def plex_history_url(self) -> str:
        """Get the play history endpoint from the server URL."""
        return f"{self.plex_url.rstrip('/')}/status/sessions/history/all"

    @property
    def database_path_resolved(self) -> Path:
        """Get resolved database path."""
        path = Path(self.database_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path


settings = Settings()
