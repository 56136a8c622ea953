"""GradeLedger configuration, read from ``GRADELEDGER_*`` environment variables."""

from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DATABASE_FILENAME = "gradeledger.db"


class Settings(BaseSettings):
    """Storage location, grading rules and CORS origins."""

    model_config = SettingsConfigDict(env_prefix="GRADELEDGER_", extra="ignore")

    app_name: str = "GradeLedger API"

    # Storage
    data_dir: str = Field(
        default=str(DEFAULT_DATA_DIR),
        validation_alias=AliasChoices("GRADELEDGER_DATA_DIR", "DATA_DIR"),
    )
    sqlite_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GRADELEDGER_SQLITE_PATH", "SQLITE_PATH"),
    )

    # Grading rules
    require_complete_rubric: bool = False
    default_max_score: float = Field(default=100.0, gt=0)
    score_step: float = Field(default=0.5, gt=0)

    # Comma separated, or "*"
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("GRADELEDGER_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    @model_validator(mode="after")
    def _database_in_data_dir(self) -> "Settings":
        if not self.sqlite_path:
            self.sqlite_path = str(Path(self.data_dir) / DATABASE_FILENAME)
        return self

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def sqlite_url(self) -> str:
        return f"sqlite:///{self.sqlite_path}"

    @property
    def cors_origin_list(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]
        return ["*"] if origins == ["*"] else origins


settings = Settings()
