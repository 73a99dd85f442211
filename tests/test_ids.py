import os
import re
from unittest import TestCase

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")

from filehost import ids  # noqa: E402


class IdGeneratorTests(TestCase):
    def test_shape(self):
        for _ in range(200):
            value = ids.generate()
            self.assertRegex(value, re.compile(r"^[A-Za-z0-9_-]{7,14}$"))
            self.assertTrue(ids.is_valid(value))

    def test_practically_unique(self):
        seen = {ids.generate() for _ in range(5000)}
        self.assertEqual(len(seen), 5000)

    def test_is_valid_rejects_bad_shapes(self):
        self.assertFalse(ids.is_valid(""))
        self.assertFalse(ids.is_valid("abc"))
        self.assertFalse(ids.is_valid("a" * 15))
        self.assertFalse(ids.is_valid("abc/../def"))
        self.assertFalse(ids.is_valid("abcdefg.txt"))
