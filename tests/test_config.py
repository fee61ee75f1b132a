"""Tests for engine configuration loading."""

import os
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from empforge.config import EngineConfig, ValidationPolicy, load_config


class LoadConfigTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write(self, text: str) -> str:
        path = Path(self.tmp.name) / "engine.yml"
        path.write_text(text, encoding="utf-8")
        return str(path)

    def test_defaults(self):
        config = EngineConfig()
        self.assertEqual(config.confidence_threshold, 0.7)
        self.assertEqual(config.max_reasoning_steps, 10)
        self.assertEqual(config.validation_policy, ValidationPolicy.LENIENT)
        self.assertEqual(config.stage_timeout, 30)
        self.assertIsNone(config.session_timeout)
        self.assertFalse(config.simulated_latency)

    def test_empty_file_gives_defaults(self):
        self.assertEqual(load_config(self.write("")), EngineConfig())

    def test_values_and_environment_substitution(self):
        os.environ["EMPFORGE_TEST_STAGE_TIMEOUT"] = "5"
        self.addCleanup(os.environ.pop, "EMPFORGE_TEST_STAGE_TIMEOUT")
        config = load_config(self.write(
            "validation_policy: strict\n"
            "stage_timeout: ${EMPFORGE_TEST_STAGE_TIMEOUT}\n"
            "enable_alternatives: false\n"
        ))
        self.assertEqual(config.validation_policy, ValidationPolicy.STRICT)
        self.assertEqual(config.stage_timeout, 5)
        self.assertFalse(config.enable_alternatives)

    def test_invalid_values_are_rejected(self):
        with self.assertRaises(ValidationError):
            load_config(self.write("validation_policy: sometimes\n"))
        with self.assertRaises(ValidationError):
            load_config(self.write("confidence_threshold: 1.5\n"))
