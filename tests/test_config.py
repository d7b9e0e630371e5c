"""Tests for configuration loading."""

import os

import pytest

from namereveal.config import Config, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host NAMEREVEAL_* variables out of these tests."""
    for key in list(os.environ):
        if key.startswith("NAMEREVEAL_"):
            monkeypatch.delenv(key)


class TestDefaults:

    def test_no_path(self):
        config = load_config()

        assert config == Config()
        assert config.store.mode == "proxied"
        assert config.poll.interval_seconds == 5.0
        assert config.poll.max_backoff_seconds == 60.0
        assert config.store.token is None

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")

        assert config == Config()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == Config()


class TestYaml:

    def test_full_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            """
store:
  mode: direct
  gist_id: abc123
  token: ghp_secret
  timeout_seconds: 3
cache:
  db_path: /tmp/cache.db
poll:
  interval_seconds: 2.5
proxy:
  port: 9000
  allowed_origins:
    - https://guests.example.org
ceremony:
  reveal_name: Juniper
  required_reveals: 2
  admin_passcode: sesame
  guests:
    - id: 1
      name: Ada
      passcode: "0420"
    - id: grace
"""
        )

        config = load_config(path)

        assert config.store.mode == "direct"
        assert config.store.gist_id == "abc123"
        assert config.store.token == "ghp_secret"
        assert config.store.timeout_seconds == 3
        assert config.store.filename == "guestState.json"
        assert config.cache.db_path == "/tmp/cache.db"
        assert config.poll.interval_seconds == 2.5
        assert config.poll.max_backoff_seconds == 60.0
        assert config.proxy.port == 9000
        assert config.proxy.host == "127.0.0.1"
        assert config.proxy.allowed_origins == ["https://guests.example.org"]
        assert config.ceremony.reveal_name == "Juniper"
        assert config.ceremony.required_reveals == 2

        ada, grace = config.ceremony.guests
        assert (ada.id, ada.name, ada.passcode) == ("1", "Ada", "0420")
        assert (grace.id, grace.name, grace.passcode) == ("grace", "grace", "")

    def test_partial_section_keeps_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  proxy_url: http://proxy.local\n")

        config = load_config(path)

        assert config.store.mode == "proxied"
        assert config.store.proxy_url == "http://proxy.local"
        assert config.cache == Config().cache


class TestEnvOverrides:

    def test_overrides_file(self, tmp_path, monkeypatch):
        """Test environment variables take precedence over the YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  mode: proxied\n  gist_id: from-file\n")
        monkeypatch.setenv("NAMEREVEAL_STORE_MODE", "DIRECT")
        monkeypatch.setenv("NAMEREVEAL_GIST_ID", "from-env")
        monkeypatch.setenv("NAMEREVEAL_GITHUB_TOKEN", "ghp_env")

        config = load_config(path)

        assert config.store.mode == "direct"
        assert config.store.gist_id == "from-env"
        assert config.store.token == "ghp_env"

    def test_numeric_overrides(self, monkeypatch):
        monkeypatch.setenv("NAMEREVEAL_POLL_INTERVAL", "1.5")
        monkeypatch.setenv("NAMEREVEAL_PROXY_PORT", "9999")

        config = load_config()

        assert config.poll.interval_seconds == 1.5
        assert config.proxy.port == 9999

    def test_allowed_origins_list(self, monkeypatch):
        monkeypatch.setenv(
            "NAMEREVEAL_ALLOWED_ORIGINS", "https://a.example, https://b.example,,"
        )

        config = load_config()

        assert config.proxy.allowed_origins == ["https://a.example", "https://b.example"]

    def test_cache_and_passcode(self, monkeypatch):
        monkeypatch.setenv("NAMEREVEAL_CACHE_DB_PATH", ":memory:")
        monkeypatch.setenv("NAMEREVEAL_ADMIN_PASSCODE", "sesame")

        config = load_config()

        assert config.cache.db_path == ":memory:"
        assert config.ceremony.admin_passcode == "sesame"
