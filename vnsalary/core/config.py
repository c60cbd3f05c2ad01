from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VNSALARY_", env_file=".env", extra="ignore")

    APP_NAME: str = Field("VNSalary", description="Logger namespace")
    LOG_LEVEL: str = Field("INFO", description="Root level for engine loggers")
    LOG_PATH: str = Field("./data/logs", description="Directory for rotating log files")
    LOG_MAX_BYTES: int = Field(10_000_000, gt=0)
    LOG_BACKUP_COUNT: int = Field(5, ge=0)
    # Per-component overrides of LOG_LEVEL, e.g. VNSALARY_LOG_LEVELS={"engine": "DEBUG"}
    LOG_LEVELS: Dict[str, str] = Field(default_factory=dict)

    # Directory of versioned rate tables (rates_YYYY-MM-DD.json). Built-in table when unset.
    RATE_TABLE_DIR: Optional[str] = None

    # Inverse solver (net -> gross)
    SOLVER_MAX_ITERATIONS: int = Field(100, ge=1)
    SOLVER_TOLERANCE: Decimal = Field(Decimal("1"), gt=0, description="Absolute tolerance in VND")
    SOLVER_ASSUMED_TAX_RATE: Decimal = Field(Decimal("0.15"), ge=0, lt=1)

settings = Settings()
