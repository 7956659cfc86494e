import unittest
from unittest import TestCase
from unittest.mock import patch

import numpy as np

from src.lazygrad.infrastructure._config import RuntimeConfig


class TestRuntimeConfig(TestCase):
    def test_defaults(self):
        cfg = RuntimeConfig.from_env({})
        self.assertEqual(cfg.dtype, np.float32)
        self.assertIsNone(cfg.seed)

    def test_reads_values(self):
        cfg = RuntimeConfig.from_env(
            {"LAZYGRAD_DTYPE": " Float64 ", "LAZYGRAD_SEED": "42"}
        )
        self.assertEqual(cfg.dtype, np.float64)
        self.assertEqual(cfg.seed, 42)

    def test_empty_seed_is_unset(self):
        self.assertIsNone(RuntimeConfig.from_env({"LAZYGRAD_SEED": "  "}).seed)

    def test_invalid_dtype(self):
        with self.assertRaises(ValueError):
            RuntimeConfig.from_env({"LAZYGRAD_DTYPE": "int8"})

    def test_invalid_seed(self):
        with self.assertRaises(ValueError):
            RuntimeConfig.from_env({"LAZYGRAD_SEED": "abc"})

    def test_defaults_to_process_environment(self):
        with patch.dict("os.environ", {"LAZYGRAD_SEED": "5"}, clear=True):
            self.assertEqual(RuntimeConfig.from_env().seed, 5)

    def test_is_frozen(self):
        cfg = RuntimeConfig()
        with self.assertRaises(AttributeError):
            cfg.seed = 1


if __name__ == "__main__":
    unittest.main()
