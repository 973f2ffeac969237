import os
import sys
import unittest
from datetime import datetime, timezone


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from value_coerce import coerce_value, is_date_string, stringify


class TestValueCoerce(unittest.TestCase):
    def test_date_string_detection(self) -> None:
        self.assertTrue(is_date_string("2025-06-02T00:00:00Z"))
        self.assertTrue(is_date_string("2025-06-02T08:30:00+02:00"))
        self.assertTrue(is_date_string("2025-06-02 08:30:00"))
        self.assertFalse(is_date_string("2025-06-02"))
        self.assertFalse(is_date_string("Created 2025-06-02T00:00:00Z"))
        self.assertFalse(is_date_string(20250602))

    def test_coerce_date(self) -> None:
        value = coerce_value("2025-06-02T00:00:00Z")
        self.assertEqual(value, datetime(2025, 6, 2, tzinfo=timezone.utc))

    def test_coerce_offset_and_naive(self) -> None:
        value = coerce_value("2025-06-02T08:30:00+02:00")
        self.assertEqual(value.utcoffset().total_seconds(), 7200)
        naive = coerce_value("2025-06-02 08:30:00")
        self.assertIsNone(naive.tzinfo)
        self.assertEqual(naive.hour, 8)

    def test_pass_through(self) -> None:
        now = datetime(2025, 1, 1)
        self.assertIsNone(coerce_value(None))
        self.assertIs(coerce_value(now), now)
        self.assertEqual(coerce_value(42), 42)
        self.assertEqual(coerce_value("plain"), "plain")
        self.assertEqual(coerce_value({"a": 1}), {"a": 1})

    def test_stringify(self) -> None:
        self.assertEqual(stringify(True), "true")
        self.assertEqual(stringify(False), "false")
        self.assertEqual(stringify(None), "null")
        self.assertEqual(stringify(15000.0), "15000")
        self.assertEqual(stringify(1.5), "1.5")
        self.assertEqual(stringify([1, "a"]), '[1,"a"]')
        self.assertEqual(stringify(datetime(2025, 6, 2, tzinfo=timezone.utc)), "2025-06-02T00:00:00.000Z")


if __name__ == "__main__":
    unittest.main()
