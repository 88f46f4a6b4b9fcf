"""Global configuration for the EventHub website API."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

DEFAULTS: dict[str, Any] = {
    "database_url": None,
    "website_api_key": None,
    "asset_base_url": None,
    "default_page_limit": 50,
    "max_page_limit": 200,
    "seed_venues": 3,
    "seed_events_per_venue": 6,
    "seed_draft_percent": 25,
    "app_host": "0.0.0.0",
    "app_port": 8000,
}

TYPE_CASTERS: dict[str, Callable[[Any], Any]] = {
    "database_url": str,
    "website_api_key": str,
    "asset_base_url": str,
    "default_page_limit": int,
    "max_page_limit": int,
    "seed_venues": int,
    "seed_events_per_venue": int,
    "seed_draft_percent": int,
    "app_host": str,
    "app_port": int,
}

SECRET_KEYS = {"website_api_key"}


@dataclass(frozen=True)
class Settings:
    base_dir: Path
    data_dir: Path
    database_url: str
    website_api_key: str | None
    asset_base_url: str | None
    default_page_limit: int
    max_page_limit: int
    seed_venues: int
    seed_events_per_venue: int
    seed_draft_percent: int
    app_host: str
    app_port: int
    config_path: Path

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def _cast_value(key: str, value: Any) -> Any:
    if value is None or key not in TYPE_CASTERS:
        return value
    caster = TYPE_CASTERS[key]
    if caster is str:
        cleaned = str(value).strip()
        return cleaned or None
    return caster(value)


def _load_toml_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        return tomllib.load(handle)


def _config_layered_value(key: str, *, toml_config: dict[str, Any]) -> Any:
    env_key = f"EVENTHUB_{key.upper()}"
    if env_key in os.environ:
        return _cast_value(key, os.environ[env_key])
    if key in toml_config:
        return _cast_value(key, toml_config[key])
    return DEFAULTS[key]


def _resolve_data_dir(base_dir: Path, data_dir: str | Path | None) -> Path:
    resolved = Path(data_dir) if data_dir else base_dir / "data"
    if not resolved.is_absolute():
        resolved = base_dir / resolved
    return resolved


def load_settings(config_override: Path | None = None) -> Settings:
    base_dir = Path(os.getenv("EVENTHUB_BASE_DIR", Path.cwd()))
    env_config = os.getenv("EVENTHUB_CONFIG")
    config_path = Path(config_override or env_config or base_dir / "eventhub.toml")
    toml_config = _load_toml_config(config_path)

    data_dir = _resolve_data_dir(
        base_dir, os.getenv("EVENTHUB_DATA_DIR", toml_config.get("data_dir"))
    )
    database_url = _config_layered_value("database_url", toml_config=toml_config)
    if not database_url:
        database_url = f"sqlite:///{data_dir / 'eventhub.db'}"

    settings = Settings(
        base_dir=base_dir,
        data_dir=data_dir,
        database_url=database_url,
        website_api_key=_config_layered_value(
            "website_api_key", toml_config=toml_config
        ),
        asset_base_url=_config_layered_value("asset_base_url", toml_config=toml_config),
        default_page_limit=_config_layered_value(
            "default_page_limit", toml_config=toml_config
        ),
        max_page_limit=_config_layered_value("max_page_limit", toml_config=toml_config),
        seed_venues=_config_layered_value("seed_venues", toml_config=toml_config),
        seed_events_per_venue=_config_layered_value(
            "seed_events_per_venue", toml_config=toml_config
        ),
        seed_draft_percent=_config_layered_value(
            "seed_draft_percent", toml_config=toml_config
        ),
        app_host=_config_layered_value("app_host", toml_config=toml_config),
        app_port=_config_layered_value("app_port", toml_config=toml_config),
        config_path=config_path,
    )
    if settings.uses_sqlite:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings


def settings_as_dict(settings: Settings) -> dict[str, Any]:
    payload = {
        "base_dir": str(settings.base_dir),
        "data_dir": str(settings.data_dir),
        "database_url": settings.database_url,
        "website_api_key": settings.website_api_key,
        "asset_base_url": settings.asset_base_url,
        "default_page_limit": settings.default_page_limit,
        "max_page_limit": settings.max_page_limit,
        "seed_venues": settings.seed_venues,
        "seed_events_per_venue": settings.seed_events_per_venue,
        "seed_draft_percent": settings.seed_draft_percent,
        "app_host": settings.app_host,
        "app_port": settings.app_port,
    }
    for key in SECRET_KEYS:
        if payload[key]:
            payload[key] = "********"
    return payload


settings = load_settings()
