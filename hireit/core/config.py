from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HIREIT_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_ignore_empty=True,
        extra="ignore",
    )

    project_name: str = "HireIT"

    # Firebase
    firebase_credentials_path: Path = _PROJECT_ROOT / "service-account-key.json"
    firebase_config_path: Path = _PROJECT_ROOT / "Firebase.json" # client-side config, only projectId is read
    firebase_project_id: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


settings = Settings()
