from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH = Path.home() / ".config" / "browsechat" / "config.yml"

# Environment variables that override file values, by field name.
_ENV_OVERRIDES = {
    "model_base_url": "OPENAI_BASE_URL",
    "model_api_key": "OPENAI_API_KEY",
    "model": "BROWSECHAT_MODEL",
    "summary_model": "BROWSECHAT_SUMMARY_MODEL",
    "browserbase_api_key": "BROWSERBASE_API_KEY",
    "browserbase_project_id": "BROWSERBASE_PROJECT_ID",
    "max_duration": "BROWSECHAT_MAX_DURATION",
    "clone_root": "BROWSECHAT_CLONE_ROOT",
    "log_level": "BROWSECHAT_LOG_LEVEL",
}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class AppConfig:
    model_base_url: str = "https://api.openai.com/v1"
    model_api_key: str = ""
    model: str = "gpt-4-turbo"
    summary_model: str = ""            # empty = use main model
    browserbase_api_key: str = ""
    browserbase_project_id: str = ""
    browserbase_api_url: str = "https://api.browserbase.com/v1"
    browserbase_connect_url: str = "wss://connect.browserbase.com"
    session_timeout: int = 0           # provider-side session TTL in seconds (0 = provider default)
    max_duration: float = 300.0        # hard ceiling for one request
    page_timeout: float = 10.0         # page load / selector wait
    tool_timeout: float = 120.0        # one tool execution
    max_steps: int = 5                 # model calls per request
    tool_concurrency: int = 1
    summary_max_chars: int = 12000
    clone_root: str = "."
    security_search_url: str = "https://www.google.com/search?q=best+cyber+security+practices"
    log_level: str = "INFO"

    @property
    def effective_summary_model(self) -> str:
        return self.summary_model or self.model

    def missing_secrets(self) -> list[str]:
        missing: list[str] = []
        if not self.browserbase_api_key:
            missing.append("BROWSERBASE_API_KEY")
        if not self.browserbase_project_id:
            missing.append("BROWSERBASE_PROJECT_ID")
        return missing


def _positive_float(value: object, default: float) -> float:
    if isinstance(value, (int, float, str)):
        try:
            parsed = float(value)
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _int_in_range(value: object, default: int, low: int, high: int) -> int:
    if isinstance(value, (int, float, str)):
        try:
            parsed = int(value)
        except ValueError:
            return default
        return parsed if low <= parsed <= high else default
    return default


def _validate(cfg: dict[str, Any]) -> dict[str, Any]:
    defaults = AppConfig().__dict__.copy()
    known = {f.name for f in fields(AppConfig)}
    merged = {**defaults, **{k: v for k, v in cfg.items() if k in known}}
    for key in (
        "model_base_url",
        "model",
        "browserbase_api_url",
        "browserbase_connect_url",
        "clone_root",
        "security_search_url",
    ):
        if not isinstance(merged.get(key), str) or not merged[key].strip():
            merged[key] = defaults[key]
        merged[key] = merged[key].strip()
    for key in ("model_api_key", "summary_model", "browserbase_api_key", "browserbase_project_id"):
        merged[key] = str(merged.get(key) or "").strip()
    merged["model_base_url"] = merged["model_base_url"].rstrip("/")
    merged["browserbase_api_url"] = merged["browserbase_api_url"].rstrip("/")
    merged["session_timeout"] = _int_in_range(merged["session_timeout"], defaults["session_timeout"], 0, 21600)
    merged["max_duration"] = _positive_float(merged["max_duration"], defaults["max_duration"])
    merged["page_timeout"] = _positive_float(merged["page_timeout"], defaults["page_timeout"])
    merged["tool_timeout"] = _positive_float(merged["tool_timeout"], defaults["tool_timeout"])
    merged["max_steps"] = _int_in_range(merged["max_steps"], defaults["max_steps"], 1, 20)
    merged["tool_concurrency"] = _int_in_range(merged["tool_concurrency"], defaults["tool_concurrency"], 1, 4)
    merged["summary_max_chars"] = _int_in_range(
        merged["summary_max_chars"], defaults["summary_max_chars"], 500, 200000
    )
    level = str(merged.get("log_level") or "").upper()
    merged["log_level"] = level if level in _LOG_LEVELS else defaults["log_level"]
    return merged


def _config_path() -> Path:
    override = os.environ.get("BROWSECHAT_CONFIG")
    return Path(override).expanduser() if override else CONFIG_PATH


def load_config(path: Path | None = None, environ: dict[str, str] | None = None) -> AppConfig:
    """Build the effective configuration.

    Precedence is defaults, then the YAML file (if it exists), then the
    environment. A missing file is not an error and nothing is written back.
    """
    env = os.environ if environ is None else environ
    path = path or _config_path()
    raw: dict[str, Any] = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if isinstance(loaded, dict):
            raw = loaded
    for key, var in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            raw[key] = value
    return AppConfig(**_validate(raw))
