# copyfactory/config.py
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from copyfactory.utils.logger import logger

DEFAULT_DOMAIN = "agiliumtrade.agiliumtrade.ai"


class RetryOptions(BaseModel):
    retries: int = Field(default=5, ge=0)
    min_delay_in_seconds: float = Field(default=1.0, ge=0)
    max_delay_in_seconds: float = Field(default=30.0, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetryOptions":
        if self.max_delay_in_seconds < self.min_delay_in_seconds:
            raise ValueError("max_delay_in_seconds must not be less than min_delay_in_seconds")
        return self

    def delay(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (1-based)."""
        return min(self.max_delay_in_seconds, self.min_delay_in_seconds * (2 ** max(attempt - 1, 0)))


class CopyFactoryOptions(BaseModel):
    domain: str = DEFAULT_DOMAIN
    request_timeout: float = 10.0
    extended_timeout: float = 70.0
    polling_interval: float = 1.0
    retry_opts: RetryOptions = RetryOptions()

    @field_validator("request_timeout", "extended_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("polling_interval")
    @classmethod
    def _non_negative_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("polling_interval must not be negative")
        return v


def load_cfg(cfg_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Read config.yaml (default: the working directory), load .env next to it, and expand ${VAR} values."""
    cfg_file = Path(cfg_path) if cfg_path else (Path.cwd() / "config.yaml")

    load_dotenv(cfg_file.parent / ".env")

    with open(cfg_file, "r", encoding="utf-8") as f:
        raw_cfg = yaml.safe_load(f) or {}

    def resolve_env(obj):
        if isinstance(obj, dict):
            return {k: resolve_env(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [resolve_env(v) for v in obj]
        if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            varname = obj[2:-1]
            return os.getenv(varname, "")
        return obj

    cfg = resolve_env(raw_cfg)

    domain = (cfg.get("copyfactory") or {}).get("domain")
    if domain and domain != DEFAULT_DOMAIN:
        logger.warning(f"Using non-default CopyFactory domain: {domain}")

    return cfg


def options_from_cfg(cfg: Dict[str, Any]) -> CopyFactoryOptions:
    section = dict(cfg.get("copyfactory") or {})
    section.pop("token", None)
    return CopyFactoryOptions(**section)
