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

from value_methods import NO_METHOD, call_method, has_method, is_known_method


class TestStringMethods(unittest.TestCase):
    def test_case_and_trim(self) -> None:
        self.assertEqual(call_method("abc", "toUpperCase"), "ABC")
        self.assertEqual(call_method("ABC", "toLowerCase"), "abc")
        self.assertEqual(call_method("  x ", "trim"), "x")

    def test_substring_and_slice(self) -> None:
        self.assertEqual(call_method("hello", "substring", [1, 3]), "el")
        self.assertEqual(call_method("hello", "substring", [3, 1]), "el")
        self.assertEqual(call_method("hello", "slice", [-3]), "llo")
        self.assertEqual(call_method("hello", "charAt", [9]), "")

    def test_replace_and_pad(self) -> None:
        self.assertEqual(call_method("a-b-c", "replace", ["-", "+"]), "a+b-c")
        self.assertEqual(call_method("a-b-c", "replaceAll", ["-", "+"]), "a+b+c")
        self.assertEqual(call_method("5", "padStart", [3, "0"]), "005")
        self.assertEqual(call_method("5", "padEnd", [3, "ab"]), "5ab")

    def test_split_and_search(self) -> None:
        self.assertEqual(call_method("a,b", "split", [","]), ["a", "b"])
        self.assertEqual(call_method("abc", "split"), ["abc"])
        self.assertTrue(call_method("hello", "includes", ["ell"]))
        self.assertEqual(call_method("hello", "indexOf", ["z"]), -1)
        self.assertEqual(call_method("hello", "length"), 5)


class TestNumberMethods(unittest.TestCase):
    def test_formatting(self) -> None:
        self.assertEqual(call_method(3.14159, "toFixed", [2]), "3.14")
        self.assertEqual(call_method(15000, "toLocaleString"), "15,000")
        self.assertEqual(call_method(1234.5, "toLocaleString"), "1,234.5")
        self.assertEqual(call_method(123.456, "toPrecision", [4]), "123.5")
        self.assertEqual(call_method(255, "toString", [16]), "ff")
        self.assertEqual(call_method(2.0, "toString"), "2")

    def test_bool_is_not_number(self) -> None:
        self.assertIs(call_method(True, "toFixed", [2]), NO_METHOD)
        self.assertEqual(call_method(True, "toString"), "true")


class TestDateMethods(unittest.TestCase):
    def setUp(self) -> None:
        self.monday = datetime(2025, 6, 2, tzinfo=timezone.utc)

    def test_accessors(self) -> None:
        self.assertEqual(call_method(self.monday, "getFullYear"), 2025)
        self.assertEqual(call_method(self.monday, "getMonth"), 5)
        self.assertEqual(call_method(self.monday, "getDate"), 2)
        self.assertEqual(call_method(self.monday, "getDay"), 1)
        self.assertEqual(call_method(self.monday, "getTime"), int(self.monday.timestamp() * 1000))

    def test_locale_formats(self) -> None:
        self.assertEqual(call_method(self.monday, "toLocaleDateString"), "6/2/2025")
        self.assertEqual(call_method(self.monday, "toLocaleDateString", ["de-DE"]), "2.6.2025")
        self.assertEqual(call_method(self.monday, "toLocaleDateString", ["en-GB"]), "02/06/2025")
        self.assertEqual(call_method(self.monday, "toLocaleDateString", ["xx-XX"]), "6/2/2025")
        self.assertEqual(call_method(self.monday, "toLocaleTimeString"), "12:00:00 AM")
        self.assertEqual(call_method(self.monday, "toLocaleString"), "6/2/2025, 12:00:00 AM")

    def test_iso_and_date_string(self) -> None:
        self.assertEqual(call_method(self.monday, "toISOString"), "2025-06-02T00:00:00.000Z")
        self.assertEqual(call_method(self.monday, "toDateString"), "Mon Jun 02 2025")


class TestDispatch(unittest.TestCase):
    def test_unknown_method(self) -> None:
        self.assertIs(call_method("x", "nope"), NO_METHOD)
        self.assertIs(call_method(5, "toUpperCase"), NO_METHOD)
        self.assertIs(call_method({"a": 1}, "toString"), NO_METHOD)

    def test_known_names(self) -> None:
        self.assertTrue(is_known_method("toUpperCase"))
        self.assertTrue(is_known_method("getFullYear"))
        self.assertFalse(is_known_method("com"))
        self.assertTrue(has_method([1], "join"))
        self.assertFalse(has_method("x", "getFullYear"))

    def test_list_join(self) -> None:
        self.assertEqual(call_method([1, "a", None], "join", [" | "]), "1 | a | ")


if __name__ == "__main__":
    unittest.main()
