"""
Deal Sourcing Dedup Engine - Configuration

Settings come from environment variables or a .env file. The DEDUP_*
thresholds feed DedupConfig.from_settings().
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/deal_dedup.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=True)
    LOG_DIR: Path = Field(default=PROJECT_ROOT / "logs")

    # Deduplication settings
    DEDUP_CANDIDATE_THRESHOLD: float = Field(default=0.50)
    DEDUP_AUTO_MERGE_THRESHOLD: float = Field(default=0.85)
    DEDUP_MAX_BLOCK_SIZE: int = Field(default=100)
    DEDUP_RECENT_DAYS: int = Field(default=7)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
