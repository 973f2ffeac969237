import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.config import DEFAULT_CONFIG_ENTITY, load_env_file, load_settings


class TestLoadSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = load_settings({})
        self.assertEqual(settings.webapi_url, "")
        self.assertIsNone(settings.access_token)
        self.assertEqual(settings.cache_attempts, 5)
        self.assertEqual(settings.cache_retry_delay, 0.1)
        self.assertEqual(settings.config_entity, DEFAULT_CONFIG_ENTITY)
        self.assertEqual(settings.log_level, "INFO")

    def test_values_from_env(self) -> None:
        settings = load_settings(
            {
                "SMARTBUTTON_WEBAPI_URL": "https://org.example.com/api/data/v9.2/",
                "SMARTBUTTON_ACCESS_TOKEN": "tok",
                "SMARTBUTTON_HTTP_TIMEOUT": "5.5",
                "SMARTBUTTON_CACHE_ATTEMPTS": "3",
                "SMARTBUTTON_CACHE_RETRY_MS": "250",
                "SMARTBUTTON_CONFIG_ENTITY": "new_buttons",
                "SMARTBUTTON_LOG_LEVEL": "debug",
            }
        )
        self.assertEqual(settings.webapi_url, "https://org.example.com/api/data/v9.2")
        self.assertEqual(settings.access_token, "tok")
        self.assertEqual(settings.http_timeout, 5.5)
        self.assertEqual(settings.cache_attempts, 3)
        self.assertEqual(settings.cache_retry_delay, 0.25)
        self.assertEqual(settings.config_entity, "new_buttons")
        self.assertEqual(settings.log_level, "DEBUG")

    def test_invalid_numbers_fall_back(self) -> None:
        settings = load_settings({"SMARTBUTTON_CACHE_ATTEMPTS": "many", "SMARTBUTTON_CACHE_RETRY_MS": "-4"})
        self.assertEqual(settings.cache_attempts, 5)
        self.assertEqual(settings.cache_retry_ms, 100)


class TestEnvFile(unittest.TestCase):
    def test_env_file_does_not_override(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".env"
            path.write_text(
                "# comment\nSMARTBUTTON_TEST_A='one'\nSMARTBUTTON_TEST_B=two\nnot a pair\n",
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, {"SMARTBUTTON_TEST_B": "kept"}, clear=False):
                load_env_file(path)
                self.assertEqual(os.environ["SMARTBUTTON_TEST_A"], "one")
                self.assertEqual(os.environ["SMARTBUTTON_TEST_B"], "kept")

    def test_missing_file_is_ignored(self) -> None:
        load_env_file(Path("/nonexistent/.env"))


if __name__ == "__main__":
    unittest.main()
