from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest
from unittest import mock

from judocenter.config import AppConfig, load_app_config, save_app_config


class AppConfigTests(unittest.TestCase):
    def test_defaults_when_file_missing(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with mock.patch.dict(os.environ, {"JUDOCENTER_CONFIG": ""}):
                config = load_app_config(data_dir=Path(tmpdir))
            self.assertEqual(config.data_dir, Path(tmpdir))
            self.assertEqual(config.log_level, "WARNING")
            self.assertIsNone(config.reference_year)
            self.assertEqual(config.output_dir, Path(tmpdir) / "exports")

    def test_reads_config_yaml_from_data_dir(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "config.yaml").write_text(
                "log_level: info\nreference_year: 2026\norganization_name: Kanto Judo\nunknown_key: 1\n",
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, {"JUDOCENTER_CONFIG": ""}):
                config = load_app_config(data_dir=Path(tmpdir))
            self.assertEqual(config.log_level, "INFO")
            self.assertEqual(config.reference_year, 2026)
            self.assertEqual(config.organization_name, "Kanto Judo")

    def test_env_vars_select_home_and_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = Path(tmpdir) / "custom.yaml"
            cfg.write_text("export_dir: out\n", encoding="utf-8")
            env = {"JUDOCENTER_HOME": str(Path(tmpdir) / "home"), "JUDOCENTER_CONFIG": str(cfg)}
            with mock.patch.dict(os.environ, env):
                config = load_app_config()
            self.assertEqual(config.data_dir, Path(tmpdir) / "home")
            self.assertEqual(config.output_dir, Path("out"))

    def test_malformed_config_falls_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            for text in ("log_level: [unclosed\n", "- a\n- list\n", "log_level: LOUD\n"):
                path.write_text(text, encoding="utf-8")
                config = load_app_config(path=path, data_dir=Path(tmpdir))
                self.assertEqual(config.log_level, "WARNING")

    def test_save_and_reload(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = AppConfig(data_dir=Path(tmpdir), log_level="debug", organization_name="Dojo")
            path = save_app_config(config)
            self.assertEqual(path, Path(tmpdir) / "config.yaml")
            reloaded = load_app_config(path=path, data_dir=Path(tmpdir))
            self.assertEqual(reloaded.log_level, "DEBUG")
            self.assertEqual(reloaded.organization_name, "Dojo")


if __name__ == "__main__":
    unittest.main()
