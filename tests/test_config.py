"""
Configuration loading tests.
"""
import pytest

from carbonledger.daemon.utils.config_loader import SQLITE_MAX_INT, ConfigLoader

VALID_YAML = """
version: 1
limits:
  max_value: 1000000
  max_source_length: 64
  max_uri_length: 512
policy:
  uri_requires_active: true
storage:
  busy_timeout_seconds: 2.5
"""


def _loader(tmp_path, text=None):
    loader = ConfigLoader()
    loader.config_dir = tmp_path
    loader.config_file = tmp_path / "ledger.yaml"
    if text is not None:
        loader.config_file.write_text(text)
    return loader


class TestConfigLoad:
    def test_valid_config_loads(self, tmp_path):
        config = _loader(tmp_path, VALID_YAML).load_config()

        assert config.version == 1
        assert config.limits.max_value == 1_000_000
        assert config.limits.max_source_length == 64
        assert config.policy.uri_requires_active is True
        assert config.storage.busy_timeout_seconds == 2.5

    def test_missing_file_uses_defaults(self, tmp_path):
        loader = _loader(tmp_path)
        config = loader.load_config()

        assert config.limits.max_value == SQLITE_MAX_INT
        assert config.limits.max_uri_length == 2048
        assert config.policy.uri_requires_active is False
        assert loader.limits is config.limits

    def test_partial_file_fills_defaults(self, tmp_path):
        config = _loader(tmp_path, "version: 1\npolicy:\n  uri_requires_active: true\n").load_config()

        assert config.policy.uri_requires_active is True
        assert config.limits.max_source_length == 256

    def test_env_selects_config_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CCL_CONFIG_DIR", str(tmp_path))
        loader = ConfigLoader()
        assert loader.config_file == tmp_path / "ledger.yaml"


class TestConfigReloadSafety:
    """Reload is atomic: a bad file never replaces a good config."""

    def test_invalid_yaml_preserves_old(self, tmp_path):
        loader = _loader(tmp_path, VALID_YAML)
        loader.load_config()

        loader.config_file.write_text("this is not valid yaml: [[[")
        with pytest.raises(ValueError, match="previous config retained"):
            loader.load_config()

        assert loader.config.limits.max_value == 1_000_000

    def test_schema_violation_preserves_old(self, tmp_path):
        loader = _loader(tmp_path, VALID_YAML)
        loader.load_config()

        loader.config_file.write_text("version: 1\nlimits:\n  max_value: 0\n")
        with pytest.raises(ValueError, match="Invalid configuration"):
            loader.load_config()

        assert loader.policy.uri_requires_active is True

    @pytest.mark.parametrize("text", [
        "version: 2\n",
        "- just\n- a list\n",
        "limits:\n  max_value: 9223372036854775808\n",
        "storage:\n  busy_timeout_seconds: 0\n",
    ])
    def test_rejected_without_fallback(self, tmp_path, text):
        loader = _loader(tmp_path, text)
        with pytest.raises(ValueError, match="no fallback"):
            loader.load_config()
        assert loader.config is None
