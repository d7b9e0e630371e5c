"""Configuration loading for namereveal."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class StoreConfig:
    """Where the shared document lives and how to reach it."""

    mode: str = "proxied"  # "proxied" or "direct"
    proxy_url: str = "http://localhost:8787"
    api_base: str = "https://api.github.com"
    gist_id: str = ""
    filename: str = "guestState.json"
    token: str | None = None
    timeout_seconds: float = 10.0


@dataclass
class CacheConfig:
    db_path: str = "~/.namereveal/cache.db"


@dataclass
class PollConfig:
    interval_seconds: float = 5.0
    max_backoff_seconds: float = 60.0


@dataclass
class ProxyConfig:
    """Settings for the credential-holding proxy service."""

    host: str = "127.0.0.1"
    port: int = 8787
    allowed_origins: list[str] = field(default_factory=list)
    max_age_seconds: int = 86400


@dataclass
class GuestConfig:
    id: str
    name: str
    passcode: str = ""


@dataclass
class CeremonyConfig:
    """Values used to provision the shared document and gate the UI."""

    reveal_name: str = ""
    required_reveals: int = 5
    admin_passcode: str = ""
    guests: list[GuestConfig] = field(default_factory=list)


@dataclass
class Config:
    store: StoreConfig = field(default_factory=StoreConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    ceremony: CeremonyConfig = field(default_factory=CeremonyConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with NAMEREVEAL_ prefix."""
    return os.environ.get(f"NAMEREVEAL_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Store overrides
    if mode := _get_env("STORE_MODE"):
        config.store.mode = mode.lower()
    if proxy_url := _get_env("PROXY_URL"):
        config.store.proxy_url = proxy_url
    if gist_id := _get_env("GIST_ID"):
        config.store.gist_id = gist_id
    if token := _get_env("GITHUB_TOKEN"):
        config.store.token = token

    # Cache overrides
    if db_path := _get_env("CACHE_DB_PATH"):
        config.cache.db_path = db_path

    # Poll overrides
    if interval := _get_env("POLL_INTERVAL"):
        config.poll.interval_seconds = float(interval)

    # Proxy overrides
    if port := _get_env("PROXY_PORT"):
        config.proxy.port = int(port)
    if origins := _get_env("ALLOWED_ORIGINS"):
        config.proxy.allowed_origins = [
            o.strip() for o in origins.split(",") if o.strip()
        ]

    # Ceremony overrides
    if passcode := _get_env("ADMIN_PASSCODE"):
        config.ceremony.admin_passcode = passcode

    return config


def _parse_guests(data: list) -> list[GuestConfig]:
    """Parse the guest roster."""
    guests = []
    for guest_data in data:
        guests.append(
            GuestConfig(
                id=str(guest_data["id"]),
                name=guest_data.get("name", str(guest_data["id"])),
                passcode=str(guest_data.get("passcode", "")),
            )
        )
    return guests


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse store config
            if "store" in data:
                store_data = data["store"]
                config.store = StoreConfig(
                    mode=store_data.get("mode", config.store.mode),
                    proxy_url=store_data.get("proxy_url", config.store.proxy_url),
                    api_base=store_data.get("api_base", config.store.api_base),
                    gist_id=store_data.get("gist_id", config.store.gist_id),
                    filename=store_data.get("filename", config.store.filename),
                    token=store_data.get("token"),
                    timeout_seconds=store_data.get(
                        "timeout_seconds", config.store.timeout_seconds
                    ),
                )

            # Parse cache config
            if "cache" in data:
                config.cache = CacheConfig(
                    db_path=data["cache"].get("db_path", config.cache.db_path)
                )

            # Parse poll config
            if "poll" in data:
                poll_data = data["poll"]
                config.poll = PollConfig(
                    interval_seconds=poll_data.get(
                        "interval_seconds", config.poll.interval_seconds
                    ),
                    max_backoff_seconds=poll_data.get(
                        "max_backoff_seconds", config.poll.max_backoff_seconds
                    ),
                )

            # Parse proxy config
            if "proxy" in data:
                proxy_data = data["proxy"]
                config.proxy = ProxyConfig(
                    host=proxy_data.get("host", config.proxy.host),
                    port=proxy_data.get("port", config.proxy.port),
                    allowed_origins=proxy_data.get("allowed_origins", []),
                    max_age_seconds=proxy_data.get(
                        "max_age_seconds", config.proxy.max_age_seconds
                    ),
                )

            # Parse ceremony config
            if "ceremony" in data:
                ceremony_data = data["ceremony"]
                guests = []
                if "guests" in ceremony_data:
                    guests = _parse_guests(ceremony_data["guests"])

                config.ceremony = CeremonyConfig(
                    reveal_name=ceremony_data.get(
                        "reveal_name", config.ceremony.reveal_name
                    ),
                    required_reveals=ceremony_data.get(
                        "required_reveals", config.ceremony.required_reveals
                    ),
                    admin_passcode=ceremony_data.get(
                        "admin_passcode", config.ceremony.admin_passcode
                    ),
                    guests=guests,
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
