import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_concurrency: int = Field(default=5, ge=1, alias="PDP_MAX_CONCURRENCY")
    max_retries: int = Field(default=2, ge=0, alias="PDP_MAX_RETRIES")
    navigation_timeout_ms: int = Field(default=60000, gt=0, alias="PDP_NAVIGATION_TIMEOUT_MS")
    probe_timeout_ms: int = Field(default=1500, gt=0, alias="PDP_PROBE_TIMEOUT_MS")
    settle_ms: int = Field(default=5000, ge=0, alias="PDP_SETTLE_MS")
    mobile_user_agent: bool = Field(default=True, alias="PDP_MOBILE_USER_AGENT")
    headless: bool = Field(default=True, alias="PDP_HEADLESS")
    stealth: bool = Field(default=False, alias="PDP_STEALTH")
    output_path: Path = Field(default=Path("data/clean/items.jsonl"), alias="PDP_OUTPUT_PATH")
    save_html: bool = Field(default=False, alias="PDP_SAVE_HTML")
    log_level: str = Field(default="INFO", alias="PDP_LOG_LEVEL")


def _load_dotenv():
    # Load from the project root if present, otherwise rely on environment variables.
    root_env = Path(__file__).resolve().parents[1] / ".env"
    if root_env.exists():
        load_dotenv(root_env)
    else:
        load_dotenv()


def load_settings(**overrides) -> Settings:
    """Settings from the environment, with non-None keyword overrides on top."""
    _load_dotenv()
    values = {k: v for k, v in os.environ.items() if k.startswith("PDP_")}
    values.update({Settings.model_fields[k].alias: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)
    except ValidationError as exc:
        fields = ", ".join(str(e["loc"][0]) for e in exc.errors())
        raise ConfigError(f"Invalid scraper configuration: {fields}") from exc
