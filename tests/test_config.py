"""Tests for netgauge.config -- TestConfig validation and persistence."""

import os
import tempfile
import unittest
from unittest import mock

from netgauge.config import (
    DEFAULTS,
    TestConfig,
    load_config,
    load_test_config,
    save_config,
    update_config,
)
from netgauge.errors import ConfigError, NetgaugeError


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("duration", "parallel_connections", "enable_bufferbloat", "enable_stress_test"):
            self.assertIn(key, DEFAULTS)

    def test_default_values(self):
        config = TestConfig()
        self.assertEqual(config.duration, 10.0)
        self.assertEqual(config.parallel_connections, 4)
        self.assertTrue(config.enable_bufferbloat)
        self.assertFalse(config.enable_stress_test)


class TestValidate(unittest.TestCase):
    def test_valid_returns_self(self):
        config = TestConfig(duration=5.0, parallel_connections=8)
        self.assertIs(config.validate(), config)

    def test_connection_bounds(self):
        TestConfig(parallel_connections=1).validate()
        TestConfig(parallel_connections=32).validate()
        for bad in (0, 33, -1):
            with self.subTest(connections=bad):
                with self.assertRaises(ConfigError):
                    TestConfig(parallel_connections=bad).validate()

    def test_duration_bounds(self):
        for bad in (0.0, 0.5, 301.0):
            with self.subTest(duration=bad):
                with self.assertRaises(ConfigError):
                    TestConfig(duration=bad).validate()

    def test_error_hierarchy(self):
        with self.assertRaises(NetgaugeError):
            TestConfig(parallel_connections=0).validate()
        with self.assertRaises(ValueError):
            TestConfig(parallel_connections=0).validate()

    def test_from_dict_bad_type(self):
        with self.assertRaises(ConfigError):
            TestConfig.from_dict({"parallel_connections": "many"})

    def test_from_dict_round_trip(self):
        config = TestConfig(duration=3.0, parallel_connections=2, enable_bufferbloat=False)
        self.assertEqual(TestConfig.from_dict(config.to_dict()), config)


class TestLoadSaveConfig(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "nested", "config.json")
        patcher = mock.patch("netgauge.config._config_path", return_value=self.path)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)

    def test_load_defaults_when_missing(self):
        cfg = load_config()
        self.assertEqual(cfg["parallel_connections"], 4)
        self.assertEqual(cfg["duration"], 10.0)

    def test_save_and_load(self):
        save_config({"duration": 5.0})
        cfg = load_config()
        self.assertEqual(cfg["duration"], 5.0)
        # Defaults still present
        self.assertEqual(cfg["parallel_connections"], 4)

    def test_corrupt_file_returns_defaults(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w") as f:
            f.write("NOT JSON")
        with self.assertLogs("netgauge.config", level="WARNING"):
            cfg = load_config()
        self.assertEqual(cfg["parallel_connections"], 4)

    def test_update_keeps_other_keys(self):
        save_config({"duration": 5.0, "theme": "dark"})
        update_config({"parallel_connections": 8})
        cfg = load_config()
        self.assertEqual(cfg["parallel_connections"], 8)
        self.assertEqual(cfg["duration"], 5.0)
        self.assertEqual(cfg["theme"], "dark")

    def test_load_test_config_validates(self):
        save_config({"parallel_connections": 64})
        with self.assertRaises(ConfigError):
            load_test_config()


if __name__ == "__main__":
    unittest.main()
