"""Application configuration via environment variables."""
import logging
from pathlib import Path

from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    app_name: str = "Costner"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    projects_dir: Path = PROJECT_ROOT / "data" / "projects"
    project_extension: str = ".costner"
    default_request_timeout: int = 30
    run_timeout: float | None = None
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = {"env_prefix": "COSTNER_"}


settings = Settings()
settings.projects_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
