# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import os
import tempfile
import unittest

from recmacro.config import ExpansionConfig, load_config
from recmacro.errors import ConfigError
from recmacro.expander import DEFAULT_MAX_DEPTH, DEFAULT_MAX_STEPS


class TestExpansionConfig(unittest.TestCase):
    """
    Test ExpansionConfig class and load_config.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "recmacro.toml")

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, text):
        with open(self.path, "w") as f:
            f.write(text)

    def test_defaults(self):
        """Check default settings"""
        config = ExpansionConfig()
        self.assertEqual(config.max_steps, DEFAULT_MAX_STEPS)
        self.assertEqual(config.max_depth, DEFAULT_MAX_DEPTH)
        self.assertIsNone(config.max_depth)
        self.assertTrue(config.combinators)
        self.assertEqual(config.defines, [])

    def test_validation(self):
        """Check invalid settings are rejected"""
        invalid = [
            {"max_steps": 0},
            {"max_steps": "10"},
            {"max_depth": True},
            {"combinators": "yes"},
            {"defines": "A=1"},
            {"defines": [1]},
        ]
        for kwargs in invalid:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ConfigError):
                    ExpansionConfig(**kwargs)

        config = ExpansionConfig(max_steps=None, max_depth=None)
        self.assertIsNone(config.max_steps)
        self.assertIsNone(config.max_depth)

    def test_from_dict(self):
        """Check construction from a table"""
        config = ExpansionConfig.from_dict({"max_steps": 5, "defines": ["A"]})
        self.assertEqual(config.max_steps, 5)
        self.assertEqual(config.defines, ["A"])

        with self.assertRaises(ConfigError):
            ExpansionConfig.from_dict({"max_step": 5})

        with self.assertRaises(ConfigError):
            ExpansionConfig.from_dict([])

    def test_load(self):
        """Check loading a TOML file"""
        self.write(
            "[expansion]\n"
            + "max_steps = 500\n"
            + "combinators = false\n"
            + 'defines = ["INC(x)=x + 1"]\n',
        )
        config = load_config(self.path)
        self.assertEqual(config.max_steps, 500)
        self.assertEqual(config.max_depth, DEFAULT_MAX_DEPTH)
        self.assertFalse(config.combinators)
        self.assertEqual(config.defines, ["INC(x)=x + 1"])

    def test_load_empty(self):
        """Check a file without an [expansion] table uses defaults"""
        self.write("[other]\nkey = 1\n")
        self.assertEqual(load_config(self.path), ExpansionConfig())

    def test_load_invalid(self):
        """Check malformed files are reported"""
        self.write("[expansion\n")
        with self.assertRaises(ConfigError):
            load_config(self.path)

        self.write("[expansion]\nmax_steps = -1\n")
        with self.assertRaises(ConfigError):
            load_config(self.path)

        self.write("expansion = 1\n")
        with self.assertRaises(ConfigError):
            load_config(self.path)


if __name__ == "__main__":
    unittest.main()
