"""Unit tests for configuration loading."""

import os
import tempfile
import unittest
from dataclasses import replace

import yaml

from linkpost.config import Config, Settings
from linkpost.core.article import ConfigError
from linkpost.sources import DEFAULT_SOURCES, enabled_sources


class ConfigTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_yaml(self, data, name="config.yaml"):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        return path

    def test_defaults(self):
        settings = Config(environ={}).settings()
        self.assertEqual(settings.max_posts_per_day, 3)
        self.assertEqual(settings.min_article_length, 200)
        self.assertEqual(settings.schedule_hour, 9)
        self.assertEqual(settings.schedule_timezone, "America/New_York")
        self.assertEqual(list(settings.sources), DEFAULT_SOURCES)
        self.assertFalse(settings.summarizer_enabled)

    def test_default_registry_has_one_disabled_source(self):
        disabled = [s.name for s in DEFAULT_SOURCES if not s.enabled]
        self.assertEqual(disabled, ["AI Weekly"])
        self.assertEqual(len(enabled_sources(DEFAULT_SOURCES)), len(DEFAULT_SOURCES) - 1)

    def test_file_overrides_defaults(self):
        path = self.write_yaml({
            "posts": {"max_per_day": 5},
            "sources": [
                {"name": "Local", "url": "https://local.example/feed", "category": "Science"},
                {"name": "Muted", "url": "https://muted.example/feed", "enabled": False},
            ],
        })
        settings = Config(path, environ={}).settings()
        self.assertEqual(settings.max_posts_per_day, 5)
        self.assertEqual(settings.post_max_length, 3000)
        self.assertEqual([s.name for s in settings.sources], ["Local", "Muted"])
        self.assertEqual(settings.sources[0].category, "science")
        self.assertEqual(settings.sources[1].category, "tech")
        self.assertFalse(settings.sources[1].enabled)

    def test_missing_file_uses_defaults(self):
        settings = Config(os.path.join(self.tmpdir.name, "absent.yaml"), environ={}).settings()
        self.assertEqual(settings.max_posts_per_day, 3)

    def test_prefixed_env_overrides_file(self):
        path = self.write_yaml({"posts": {"max_per_day": 5}})
        environ = {
            "LINKPOST_POSTS__MAX_PER_DAY": "7",
            "LINKPOST_SCHEDULER__TIMEZONE": "Europe/Berlin",
        }
        settings = Config(path, environ=environ).settings()
        self.assertEqual(settings.max_posts_per_day, 7)
        self.assertEqual(settings.schedule_timezone, "Europe/Berlin")

    def test_legacy_env(self):
        environ = {
            "HUGGINGFACE_TOKEN": "hf_test",
            "MAX_POSTS_PER_DAY": "4",
            "FETCH_TIMEOUT_MS": "15000",
        }
        settings = Config(environ=environ).settings()
        self.assertEqual(settings.summarizer_token, "hf_test")
        self.assertTrue(settings.summarizer_enabled)
        self.assertEqual(settings.max_posts_per_day, 4)
        self.assertEqual(settings.feed_timeout, 15.0)

    def test_openai_needs_its_own_key(self):
        environ = {"LINKPOST_SUMMARIZER__PROVIDER": "openai", "HUGGINGFACE_TOKEN": "hf_test"}
        self.assertFalse(Config(environ=environ).settings().summarizer_enabled)
        environ["OPENAI_API_KEY"] = "sk-test"
        self.assertTrue(Config(environ=environ).settings().summarizer_enabled)

    def test_invalid_hour(self):
        with self.assertRaises(ConfigError):
            Config(environ={"SCHEDULE_HOUR": "25"}).settings()

    def test_non_numeric_value(self):
        with self.assertRaises(ConfigError):
            Config(environ={"MAX_POSTS_PER_DAY": "lots"}).settings()
        with self.assertRaises(ConfigError):
            Config(environ={"LINKPOST_POSTS__MAX_PER_DAY": "lots"}).settings()

    def test_unknown_timezone(self):
        with self.assertRaises(ConfigError):
            replace(Settings(), schedule_timezone="Mars/Olympus").validate()

    def test_no_sources(self):
        with self.assertRaises(ConfigError):
            replace(Settings(), sources=()).validate()

    def test_malformed_file(self):
        path = os.path.join(self.tmpdir.name, "broken.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("posts: [unclosed")
        with self.assertRaises(ConfigError):
            Config(path, environ={})

    def test_save_and_reload(self):
        config = Config(environ={"MAX_POSTS_PER_DAY": "6"})
        path = os.path.join(self.tmpdir.name, "saved.yaml")
        self.assertTrue(config.save(path))
        self.assertEqual(Config(path, environ={}).get("posts.max_per_day"), 6)


if __name__ == "__main__":
    unittest.main()
