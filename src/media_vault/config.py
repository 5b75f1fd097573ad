"""Configuration management for the Media Vault client.

Loads settings from .env and API profiles from profiles.yaml.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv


class ApiProfile(BaseModel):
    """A single API deployment's configuration."""
    api_base_url: str
    description: str = ""


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    profile: str = Field(default="local", description="Active profile from profiles.yaml")
    api_url: str = Field(default="", description="Overrides the profile's api_base_url")
    token_type: str = Field(default="Bearer", description="Authorization header scheme")
    token_file: str = Field(default="~/.media-vault/session.json", description="Durable session store")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    refresh_before_expiry: int = Field(default=300, description="Seconds before expiry to refresh proactively")
    proactive_refresh: bool = Field(default=True, description="Refresh before sending when close to expiry")
    token_key: str = Field(default="media_vault_token")
    refresh_token_key: str = Field(default="media_vault_refresh_token")
    token_expiry_key: str = Field(default="media_vault_token_expiry")


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings
    profiles: dict[str, ApiProfile]

    def get_profile(self, name: str | None = None) -> ApiProfile:
        """Get an API profile by name (defaults to the active one)."""
        name = (name or self.settings.profile).lower()
        if name not in self.profiles:
            available = ", ".join(sorted(self.profiles.keys()))
            raise ValueError(f"Unknown profile '{name}'. Available: {available}")
        return self.profiles[name]

    @property
    def api_base_url(self) -> str:
        """Base URL for API calls, honoring MEDIA_VAULT_API_URL."""
        if self.settings.api_url:
            return self.settings.api_url.rstrip("/")
        return self.get_profile().api_base_url.rstrip("/")

    @property
    def token_path(self) -> Path:
        return Path(self.settings.token_file).expanduser()

    @property
    def all_profiles(self) -> list[str]:
        """List all configured profile names."""
        return sorted(self.profiles.keys())


DEFAULT_PROFILES = {"local": ApiProfile(api_base_url="http://localhost:3001/api")}


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where config/ lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "config" / "profiles.yaml").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _load_profiles(project_root: Path) -> dict[str, ApiProfile]:
    """Load API profiles from profiles.yaml, falling back to the local default."""
    profiles_path = project_root / "config" / "profiles.yaml"
    if not profiles_path.exists():
        return dict(DEFAULT_PROFILES)

    with open(profiles_path) as f:
        data = yaml.safe_load(f) or {}

    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name.lower()] = ApiProfile(**profile_data)
    return profiles or dict(DEFAULT_PROFILES)


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _env_bool(key: str, default: bool) -> bool:
    raw = _env(key, default="true" if default else "false")
    return raw.lower() in ("true", "1", "yes")


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both MEDIA_VAULT_* and the legacy REACT_APP_API_URL name.
    """
    return Settings(
        profile=_env("MEDIA_VAULT_PROFILE", default="local"),
        api_url=_env("MEDIA_VAULT_API_URL", "REACT_APP_API_URL"),
        token_type=_env("MEDIA_VAULT_TOKEN_TYPE", default="Bearer"),
        token_file=_env("MEDIA_VAULT_TOKEN_FILE", default="~/.media-vault/session.json"),
        timeout=float(_env("MEDIA_VAULT_TIMEOUT", default="30")),
        refresh_before_expiry=int(_env("MEDIA_VAULT_REFRESH_BEFORE_EXPIRY", default="300")),
        proactive_refresh=_env_bool("MEDIA_VAULT_PROACTIVE_REFRESH", True),
        token_key=_env("MEDIA_VAULT_TOKEN_KEY", default="media_vault_token"),
        refresh_token_key=_env("MEDIA_VAULT_REFRESH_TOKEN_KEY", default="media_vault_refresh_token"),
        token_expiry_key=_env("MEDIA_VAULT_TOKEN_EXPIRY_KEY", default="media_vault_token_expiry"),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    project_root = _find_project_root()

    # Load .env from project root if it exists
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    settings = _load_settings()
    profiles = _load_profiles(project_root)

    return Config(settings=settings, profiles=profiles)
