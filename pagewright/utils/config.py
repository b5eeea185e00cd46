# pagewright/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pagewright.errors import ConfigurationError


# ---------- Enums ----------

class BrowserType(str, Enum):
    chromium = "chromium"
    firefox = "firefox"
    webkit = "webkit"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for pagewright.

    Values load in this order of precedence:
      1) Keyword arguments (tests, embedding applications)
      2) Environment variables
      3) .env file in project root
      4) Defaults below

    Per-environment overrides that belong to the application (debug,
    screenshots, caching) can also live in a YAML file read by EnvConfig.
    """

    # ---- Browser configuration ----
    HEADLESS: bool = Field(default=True, description="Run the browser headless")
    BROWSER_TYPE: BrowserType = Field(default=BrowserType.chromium, description="Playwright browser")
    VIEWPORT_WIDTH: int = Field(default=1366, ge=320, le=7680)
    VIEWPORT_HEIGHT: int = Field(default=768, ge=320, le=4320)
    SLOW_MO: int = Field(default=0, ge=0, description="Slow down actions (ms) for debugging")
    USER_AGENT: Optional[str] = Field(default=None)
    PAGE_LOAD_TIMEOUT: int = Field(default=60000, ge=1000)

    # ---- Application ----
    BASE_URL: str = Field(default="", description="Substituted for :base_url in page URLs")
    ENVIRONMENT: str = Field(default="development", description="Selects <CONFIG_DIR>/<ENVIRONMENT>.yml")
    CONFIG_DIR: Path = Field(default=Path("./config"))
    PAGES_DIR: Path = Field(default=Path("./pages"), description="Default location of page YAML files")

    # ---- Element resolution ----
    CACHE_ELEMENTS: bool = Field(default=True, description="Default element handle caching")
    RESOLVE_RETRIES: int = Field(default=3, ge=0)
    RESOLVE_RETRY_DELAY_MS: int = Field(default=200, ge=0)
    SET_RETRIES: int = Field(default=3, ge=0)
    SET_WAIT_MS: int = Field(default=30000, ge=0)

    # ---- Page arrival & transitions ----
    ARRIVAL_ATTEMPTS: int = Field(default=6, ge=1)
    VALIDATOR_WAIT_MS: int = Field(default=5000, ge=0)
    TRANSITION_ATTEMPTS: int = Field(default=30, ge=1)
    TRANSITION_INTERVAL_MS: int = Field(default=1000, ge=0)
    REVALIDATION_ATTEMPTS: int = Field(default=30, ge=1)
    REVALIDATION_INTERVAL_MS: int = Field(default=1000, ge=0)
    DIALOG_TIMEOUT_MS: int = Field(default=5000, ge=0)

    # ---- Debug & replay ----
    DEBUG_MODE: bool = Field(default=False)
    VERBOSE: bool = Field(default=False)
    REPLAY_ENABLED: bool = Field(default=False)
    REPLAY_DIR: Path = Field(default=Path("./replay"))
    REPLAY_SCREENSHOTS: bool = Field(default=True)
    REPLAY_THUMBNAILS: bool = Field(default=False)
    THUMBNAIL_WIDTH: int = Field(default=400, ge=16)

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.WARNING)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./pagewright.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    # ---- Proxies ----
    PROXY_SERVER: Optional[str] = None
    PROXY_USERNAME: Optional[str] = None
    PROXY_PASSWORD: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("CONFIG_DIR", "PAGES_DIR", "REPLAY_DIR", "LOG_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if isinstance(v, Path):
            return v
        return Path(str(v)) if v is not None else v

    @field_validator("CONFIG_DIR", "PAGES_DIR", "REPLAY_DIR", "LOG_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Path):
        return v if v.is_absolute() else Path.cwd() / v

    @field_validator("BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def ensure_dirs(self) -> None:
        """Create the directories the enabled features write to (idempotent)."""
        if self.LOG_TO_FILE:
            self.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        if self.REPLAY_ENABLED:
            self.REPLAY_DIR.mkdir(parents=True, exist_ok=True)

    def playwright_launch_kwargs(self) -> dict:
        kwargs = {
            "headless": self.HEADLESS,
            "slow_mo": self.SLOW_MO,
        }
        if self.PROXY_SERVER:
            proxy = {"server": self.PROXY_SERVER}
            if self.PROXY_USERNAME and self.PROXY_PASSWORD:
                proxy["username"] = self.PROXY_USERNAME
                proxy["password"] = self.PROXY_PASSWORD
            kwargs["proxy"] = proxy
        return kwargs

    def playwright_context_kwargs(self) -> dict:
        viewport = {"width": self.VIEWPORT_WIDTH, "height": self.VIEWPORT_HEIGHT}
        ctx = {"viewport": viewport}
        if self.USER_AGENT:
            ctx["user_agent"] = self.USER_AGENT
        return ctx


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    s = Settings()
    s.ensure_dirs()
    return s


# --------- YAML key-path configuration ---------

class EnvConfig:
    """
    Nested YAML configuration addressed by key paths.

    The file loaded is <CONFIG_DIR>/<ENVIRONMENT>.yml; a missing file yields an
    empty configuration so every lookup falls back to its default.

        cfg = EnvConfig(settings)
        cfg.get("global", "debug")
        cfg.get_default(False, "global", "screenshots")
    """

    def __init__(self, settings: Optional[Settings] = None, data: Optional[Dict[str, Any]] = None) -> None:
        self.settings = settings or get_settings()
        self.path: Path = self.settings.CONFIG_DIR / f"{self.settings.ENVIRONMENT}.yml"
        if data is not None:
            self._data: Dict[str, Any] = dict(data)
        elif self.path.exists():
            self._data = self._read(self.path)
        else:
            self._data = {}

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as ye:
            raise ConfigurationError(f"YAML parse error in {path}: {ye}") from ye
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {path} must define a mapping at the top level.")
        return loaded

    def add_file(self, path: Path | str) -> None:
        """Merge another YAML file into this config (top-level keys replace)."""
        p = Path(path)
        if not p.is_absolute():
            p = self.settings.CONFIG_DIR / p
        self._data.update(self._read(p))

    def get(self, *path: str) -> Any:
        node: Any = self._data
        for key in path:
            if not isinstance(node, dict) or key not in node or node[key] is None:
                raise ConfigurationError(f"Could not locate '{key}' in YAML config (path: {'.'.join(path)})")
            node = node[key]
        return node

    def get_default(self, default: Any, *path: str) -> Any:
        try:
            return self.get(*path)
        except ConfigurationError:
            return default

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)
