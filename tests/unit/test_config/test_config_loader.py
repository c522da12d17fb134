# SPDX-License-Identifier: LGPL-3.0-or-later
import argparse
import json
import tempfile
import unittest
from pathlib import Path

from fakes.fake_logger import FakeLogger
from mafailover.config.config_loader import Config
from mafailover.core.exceptions import Fatal


class TestConfigLoader(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.logger = FakeLogger()

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, name, text):
        p = self.dir / name
        p.write_text(text, encoding="utf-8")
        return p

    def test_yaml_keys_normalised(self):
        p = self._write("site.yaml", "cluster: 10.10.9.40\n\"--poll-interval\": 5\nprism-user: admin\n")
        conf = Config.load_one(self.logger, p)
        self.assertEqual(conf, {"cluster": "10.10.9.40", "poll_interval": 5, "prism_user": "admin"})

    def test_json_and_empty_files(self):
        p = self._write("a.json", json.dumps({"pd": "all"}))
        self.assertEqual(Config.load_one(self.logger, p), {"pd": "all"})
        self.assertEqual(Config.load_one(self.logger, self._write("empty.yaml", "")), {})

    def test_invalid_files_are_usage_errors(self):
        cases = [
            self._write("list.yaml", "- a\n- b\n"),
            self._write("bad.yaml", "cluster: [unclosed\n"),
            self.dir / "missing.yaml",
        ]
        for p in cases:
            with self.assertRaises(Fatal) as cm:
                Config.load_one(self.logger, p)
            self.assertEqual(cm.exception.code, 2, p)

    def test_later_files_override(self):
        a = self._write("10-base.yaml", "cluster: a\nvcenter_user: ops\n")
        b = self._write("20-site.yaml", "cluster: b\n")
        conf = Config.load_many(self.logger, [a, b])
        self.assertEqual(conf, {"cluster": "b", "vcenter_user": "ops"})

    def test_merge_is_recursive_for_mappings(self):
        merged = Config.merge({"x": {"a": 1, "b": 2}, "l": [1]}, {"x": {"b": 3}, "l": [2]})
        self.assertEqual(merged, {"x": {"a": 1, "b": 3}, "l": [2]})

    def test_expand_directory_and_glob(self):
        self._write("b.yaml", "x: 1\n")
        self._write("a.yml", "x: 2\n")
        self._write("notes.txt", "ignored")
        from_dir = Config.expand_configs(self.logger, [str(self.dir)])
        self.assertEqual([p.name for p in from_dir], ["a.yml", "b.yaml"])

        from_glob = Config.expand_configs(self.logger, [str(self.dir / "*.yaml"), str(self.dir / "b.yaml")])
        self.assertEqual([p.name for p in from_glob], ["b.yaml"])

    def test_glob_without_match(self):
        with self.assertRaises(Fatal) as cm:
            Config.expand_configs(self.logger, [str(self.dir / "*.nothing")])
        self.assertEqual(cm.exception.code, 2)

    def test_apply_as_defaults(self):
        parser = argparse.ArgumentParser()
        parser.add_argument("--cluster")
        parser.add_argument("--timer", type=int, default=300)
        Config.apply_as_defaults(self.logger, parser, {"cluster": "10.1.1.1", "timer": 30, "colour": "blue"})

        args = parser.parse_args([])
        self.assertEqual((args.cluster, args.timer), ("10.1.1.1", 30))
        self.assertEqual(parser.parse_args(["--timer", "5"]).timer, 5)
        self.assertIn("Ignoring unknown config key: colour", self.logger.messages("warning"))


if __name__ == "__main__":
    unittest.main()
