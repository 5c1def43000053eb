"""
Tests for relserve.config.loader module.

Tests configuration loading and merging including:
- Built-in defaults
- YAML file overlay (deep merge, list replacement)
- Environment overrides
- Installer URL expansion
- Error handling
"""

from __future__ import annotations

import pytest
import yaml

from relserve.config import DEFAULTS, load_config
from relserve.config.loader import _deep_merge_dicts
from relserve.exceptions import ConfigError


@pytest.fixture
def write_yaml(tmp_path):
    def _write(data, name="relserve.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_defaults_only(self):
        """Test loading with no file and an empty environment."""
        config = load_config(environ={}, load_env_file=False)

        assert config.channels == ("dev", "beta", "stable")
        assert "osx" in config.platforms
        assert config.database_url == "sqlite:///relserve.db"
        assert config.store_timeout == 5.0
        assert config.api_token is None
        assert config.source is None

    def test_defaults_not_mutated(self, write_yaml):
        """Test that loading a file leaves DEFAULTS untouched."""
        path = write_yaml({"downloads": {"installers": {"osx": "/custom.dmg"}}})

        load_config(path, environ={}, load_env_file=False)

        assert DEFAULTS["downloads"]["installers"]["osx"] == "/CHANNEL/VERSION/osx/Brave-VERSION.dmg"


class TestYamlOverlay:
    """Tests for merging a YAML file over the defaults."""

    def test_nested_keys_merge(self, write_yaml):
        """Test that nested mappings merge key by key."""
        path = write_yaml(
            {
                "store": {"timeout": 2},
                "downloads": {"installers": {"osx": "/CHANNEL/VERSION/Brave.dmg"}},
            }
        )

        config = load_config(path, environ={}, load_env_file=False)

        assert config.store_timeout == 2.0
        assert config.database_url == "sqlite:///relserve.db"
        assert config.installers["osx"] == "/CHANNEL/VERSION/Brave.dmg"
        assert "winx64" in config.installers
        assert config.source == path

    def test_lists_replace(self, write_yaml):
        """Test that lists in the file replace the default list."""
        path = write_yaml({"channels": ["nightly"]})

        config = load_config(path, environ={}, load_env_file=False)

        assert config.channels == ("nightly",)

    def test_config_path_from_environment(self, write_yaml):
        """Test that RELSERVE_CONFIG names the file when no path is given."""
        path = write_yaml({"product_name": "Muon"})

        config = load_config(environ={"RELSERVE_CONFIG": str(path)}, load_env_file=False)

        assert config.product_name == "Muon"

    def test_empty_file(self, tmp_path):
        """Test that an empty file means defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = load_config(path, environ={}, load_env_file=False)

        assert config.product_name == "Brave"


class TestEnvironmentOverlay:
    """Tests for RELSERVE_* environment variables."""

    def test_environment_wins_over_file(self, write_yaml):
        """Test that environment values override the file."""
        path = write_yaml({"store": {"url": "sqlite:///from-file.db"}})
        environ = {
            "RELSERVE_DATABASE_URL": "postgresql+psycopg://db/relserve",
            "RELSERVE_STORE_TIMEOUT": "1.5",
            "RELSERVE_BASE_URL": "https://cdn.example.com",
            "RELSERVE_API_TOKEN": "s3cret",
        }

        config = load_config(path, environ=environ, load_env_file=False)

        assert config.database_url == "postgresql+psycopg://db/relserve"
        assert config.store_timeout == 1.5
        assert config.base_url == "https://cdn.example.com"
        assert config.api_token == "s3cret"

    def test_database_url_fallback(self):
        """Test that DATABASE_URL is used when RELSERVE_DATABASE_URL is unset."""
        config = load_config(environ={"DATABASE_URL": "sqlite://"}, load_env_file=False)

        assert config.database_url == "sqlite://"


class TestInstallerUrl:
    """Tests for ServiceConfig.installer_url."""

    def test_placeholders_expanded(self):
        """Test CHANNEL and VERSION substitution."""
        config = load_config(
            environ={"RELSERVE_BASE_URL": "https://cdn.example.com/"}, load_env_file=False
        )

        assert (
            config.installer_url("beta", "debian64", "0.7.0")
            == "https://cdn.example.com/beta/0.7.0/debian64/brave_0.7.0_amd64.deb"
        )

    def test_unknown_platform(self):
        """Test that platforms without a template have no URL."""
        config = load_config(environ={}, load_env_file=False)

        assert config.installer_url("dev", "amiga", "1.0.0") is None


class TestConfigErrors:
    """Tests for configuration errors."""

    def test_missing_file(self, tmp_path):
        """Test that a missing file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml", environ={}, load_env_file=False)

    def test_invalid_yaml(self, tmp_path):
        """Test that unparsable YAML is a ConfigError."""
        path = tmp_path / "bad.yaml"
        path.write_text("channels: [dev\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Error parsing YAML"):
            load_config(path, environ={}, load_env_file=False)

    def test_top_level_list(self, write_yaml):
        """Test that a non-mapping document is rejected."""
        path = write_yaml(["dev", "beta"])

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, environ={}, load_env_file=False)

    @pytest.mark.parametrize("timeout", ["0", "-1", "soon"])
    def test_bad_timeout(self, timeout):
        """Test that the store timeout must be a positive number."""
        with pytest.raises(ConfigError, match="store.timeout"):
            load_config(environ={"RELSERVE_STORE_TIMEOUT": timeout}, load_env_file=False)

    def test_bad_port(self, write_yaml):
        """Test that a non-integer port is rejected."""
        path = write_yaml({"server": {"port": "http"}})

        with pytest.raises(ConfigError, match="server.port"):
            load_config(path, environ={}, load_env_file=False)

    def test_channels_must_be_strings(self, write_yaml):
        """Test that channels must be a list of strings."""
        path = write_yaml({"channels": "dev"})

        with pytest.raises(ConfigError, match="channels"):
            load_config(path, environ={}, load_env_file=False)


class TestDeepMerge:
    """Tests for the merge helper."""

    def test_does_not_mutate_inputs(self):
        """Test that neither input is modified."""
        base = {"a": {"b": 1}, "c": [1, 2]}
        overlay = {"a": {"d": 2}, "c": [3]}

        merged = _deep_merge_dicts(base, overlay)

        assert merged == {"a": {"b": 1, "d": 2}, "c": [3]}
        assert base == {"a": {"b": 1}, "c": [1, 2]}
