"""Tests for configuration models and management."""

import json
import tempfile
import unittest
from pathlib import Path

import pytest

from gitflow_studio.models.config import StudioConfig
from gitflow_studio.services.config_manager import ConfigManager
from gitflow_studio.utils.exceptions import ConfigurationError


class TestStudioConfig(unittest.TestCase):
    """Test cases for StudioConfig model."""

    def test_defaults(self):
        """Test default setting values."""
        config = StudioConfig()

        self.assertEqual(config.copy_files, [".env", ".env.local"])
        self.assertEqual(config.symlink_dirs, [])
        self.assertEqual(config.post_create_commands, [])
        self.assertTrue(config.open_in_new_window)
        self.assertEqual(config.worktree_base_path, "")
        self.assertEqual(config.poll_interval_seconds, 30)
        self.assertEqual(config.stale_threshold_days, 14)
        self.assertEqual(config.command_timeout_seconds, 300)

    def test_defaults_are_not_shared(self):
        first = StudioConfig()
        first.copy_files.append(".npmrc")

        self.assertEqual(StudioConfig().copy_files, [".env", ".env.local"])

    def test_from_dict_fills_missing_and_ignores_unknown(self):
        config = StudioConfig.from_dict(
            {"symlink_dirs": ["node_modules"], "stale_threshold_days": "7", "theme": "dark"}
        )

        self.assertEqual(config.symlink_dirs, ["node_modules"])
        self.assertEqual(config.stale_threshold_days, 7)
        self.assertEqual(config.copy_files, [".env", ".env.local"])
        self.assertFalse(hasattr(config, "theme"))

    def test_to_dict_covers_every_key(self):
        self.assertEqual(sorted(StudioConfig().to_dict()), sorted(StudioConfig.keys()))

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = Path(temp_dir) / "nested" / "settings.json"
            config = StudioConfig(post_create_commands=["npm ci"], poll_interval_seconds=5)

            self.assertTrue(config.save(config_file))
            loaded = StudioConfig.load(config_file)

        self.assertEqual(loaded, config)

    def test_load_missing_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            loaded = StudioConfig.load(Path(temp_dir) / "absent.json")

        self.assertEqual(loaded, StudioConfig())

    def test_load_corrupt_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = Path(temp_dir) / "settings.json"
            config_file.write_text("{not json")

            self.assertEqual(StudioConfig.load(config_file), StudioConfig())

            config_file.write_text("[1, 2]")
            self.assertEqual(StudioConfig.load(config_file), StudioConfig())


class TestConfigManager:
    """Test cases for ConfigManager."""

    def test_lazy_load_from_file(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"stale_threshold_days": 3}))

        manager = ConfigManager(config_file=config_file)

        assert manager.config.stale_threshold_days == 3
        assert manager.get("stale_threshold_days") == 3
        assert manager.get("unknown", "fallback") == "fallback"

    def test_update_persists_and_notifies(self, tmp_path, qtbot):
        config_file = tmp_path / "settings.json"
        manager = ConfigManager(config_file=config_file)

        with qtbot.waitSignal(manager.config_changed, timeout=1000):
            assert manager.update(poll_interval_seconds=10, symlink_dirs=["vendor"])

        saved = json.loads(config_file.read_text())
        assert saved["poll_interval_seconds"] == 10
        assert saved["symlink_dirs"] == ["vendor"]

    def test_update_rejects_unknown_keys(self, tmp_path):
        manager = ConfigManager(config_file=tmp_path / "settings.json")

        with pytest.raises(ConfigurationError):
            manager.update(theme="dark")

        assert not (tmp_path / "settings.json").exists()

    def test_reload_discards_memory_changes(self, tmp_path, qtbot):
        config_file = tmp_path / "settings.json"
        StudioConfig(stale_threshold_days=5).save(config_file)
        manager = ConfigManager(config_file=config_file)
        manager.config.stale_threshold_days = 99

        with qtbot.waitSignal(manager.config_changed, timeout=1000):
            reloaded = manager.reload_config()

        assert reloaded.stale_threshold_days == 5

    def test_in_memory_config(self, tmp_path):
        config = StudioConfig(stale_threshold_days=1)
        manager = ConfigManager(config_file=tmp_path / "settings.json", config=config)

        assert manager.config is config

    def test_save_without_config(self, tmp_path):
        manager = ConfigManager(config_file=tmp_path / "settings.json")

        assert not manager.save_config()

    def test_validate_config(self, tmp_path):
        manager = ConfigManager(
            config_file=tmp_path / "settings.json",
            config=StudioConfig(
                poll_interval_seconds=0,
                stale_threshold_days=0,
                copy_files=[str(tmp_path / "absolute.env")],
            ),
        )

        result = manager.validate_config()

        assert not result["valid"]
        assert len(result["issues"]) == 1
        assert len(result["warnings"]) == 2

    def test_validate_default_config(self, tmp_path):
        manager = ConfigManager(config_file=tmp_path / "settings.json")

        assert manager.validate_config() == {"valid": True, "issues": [], "warnings": []}


if __name__ == "__main__":
    unittest.main()
