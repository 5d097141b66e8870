"""Tests for INI loading and the coercions of the configuration models."""

import textwrap

import pytest
from pydantic import ValidationError

from repofetch.exceptions import ConfigurationError
from repofetch.models.config import ConfigMain, ConfigRepo, str_to_bytes
from repofetch.storage.config_manager import ConfigManager


def write_config(tmp_path, text):
    path = tmp_path / "repofetch.conf"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestCoercion:
    @pytest.mark.parametrize(
        "value, expected",
        [("100", 100), ("10k", 10240), ("1.5M", 1.5 * 1024**2), ("2G", 2 * 1024**3)],
    )
    def test_str_to_bytes(self, value, expected):
        assert str_to_bytes(value) == expected

    def test_str_to_bytes_rejects_garbage(self):
        with pytest.raises(ValueError):
            str_to_bytes("fast")

    def test_size_suffix_on_minrate_and_bandwidth(self):
        config = ConfigMain(minrate="1k", bandwidth="2M")
        assert config.minrate == 1024
        assert config.bandwidth == 2 * 1024**2

    def test_throttle_percentage(self):
        assert ConfigMain(throttle="50%").throttle == 0.5

    def test_throttle_absolute(self):
        assert ConfigMain(throttle="100k").throttle == 102400

    def test_negative_values_are_rejected(self):
        with pytest.raises(ValidationError):
            ConfigMain(minrate=-1)

    def test_ip_resolve_is_normalized(self):
        assert ConfigMain(ip_resolve="IPv6").ip_resolve == "ipv6"

    def test_baseurl_list(self):
        repo = ConfigRepo(id="r", baseurl="http://a/ http://b/,http://c/")
        assert repo.baseurl == ["http://a/", "http://b/", "http://c/"]

    def test_passwords_are_not_in_repr(self):
        assert "hunter2" not in repr(ConfigMain(password="hunter2"))


class TestConfigManager:
    def test_main_and_repos(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            [main]
            user_agent = repofetch-test
            timeout = 15
            sslverify = false
            proxy = http://proxy:3128
            proxy_password = p%ss

            [fedora]
            name = Fedora
            baseurl = https://example.org/fedora/
            timeout = 60

            [updates]
            enabled = 0
            proxy =
            """,
        )
        loaded = ConfigManager(path).load()

        assert loaded.main.user_agent == "repofetch-test"
        assert loaded.main.sslverify is False
        assert loaded.main.proxy_password == "p%ss"
        assert loaded.main.proxy_username is None

        fedora = loaded.repos["fedora"]
        assert fedora.timeout == 60
        assert fedora.user_agent == "repofetch-test"
        assert fedora.proxy == "http://proxy:3128"
        assert fedora.baseurl == ["https://example.org/fedora/"]

        updates = loaded.repos["updates"]
        assert updates.enabled is False
        assert updates.proxy == ""
        assert updates.timeout == 15

    def test_cli_overrides_apply_to_main_and_repos(self, tmp_path):
        path = write_config(tmp_path, "[main]\ntimeout = 5\n[repo]\n")
        loaded = ConfigManager(path).load({"timeout": 99})
        assert loaded.main.timeout == 99
        assert loaded.repos["repo"].timeout == 99

    def test_main_section_is_optional(self, tmp_path):
        path = write_config(tmp_path, "[only]\nbaseurl = http://x/\n")
        loaded = ConfigManager(path).load()
        assert loaded.main == ConfigMain()
        assert list(loaded.repos) == ["only"]

    def test_unknown_keys_are_ignored(self, tmp_path):
        path = write_config(tmp_path, "[main]\ngpgcheck = 1\n")
        assert ConfigManager(path).load().main == ConfigMain()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigManager(tmp_path / "missing.conf").load()

    def test_parse_error(self, tmp_path):
        path = write_config(tmp_path, "timeout = 5\n")
        with pytest.raises(ConfigurationError, match="parsing"):
            ConfigManager(path).load()

    def test_validation_error_names_section(self, tmp_path):
        path = write_config(tmp_path, "[main]\n[broken]\nminrate = slow\n")
        with pytest.raises(ConfigurationError, match=r"\[broken\]"):
            ConfigManager(path).load()

    def test_get_repo(self, tmp_path):
        path = write_config(tmp_path, "[main]\n[fedora]\n")
        manager = ConfigManager(path)
        assert manager.get_repo("fedora").id == "fedora"
        with pytest.raises(ConfigurationError, match="Unknown repository"):
            manager.get_repo("epel")
