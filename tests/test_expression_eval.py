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

from app.stores import InMemoryDataStore
from expression_eval import (
    Binary,
    ExpressionDepthError,
    ExpressionEvaluator,
    ExprParseError,
    FieldRef,
    MethodCall,
    evaluate_with_data,
    parse_expression,
    tokenize,
    truthy,
)
from lookup_resolve import lookup_type_attr
from record_cache import CacheScope, RecordCache
from template_resolve import TemplateResolver


class TestParse(unittest.TestCase):
    def test_precedence(self) -> None:
        tree = parse_expression("{a} > 1 && {b} === 2 || {c}")
        self.assertIsInstance(tree, Binary)
        self.assertEqual(tree.op, "||")
        self.assertEqual(tree.left.op, "&&")

    def test_method_call_on_field(self) -> None:
        tree = parse_expression("{name}.substring(0, 2)")
        self.assertIsInstance(tree, MethodCall)
        self.assertIsInstance(tree.target, FieldRef)
        self.assertEqual(len(tree.args), 2)

    def test_rejects_unknown_identifiers(self) -> None:
        with self.assertRaises(ExprParseError):
            parse_expression("__import__('os')")
        with self.assertRaises(ExprParseError):
            tokenize("{a} # 1")

    def test_depth_limit(self) -> None:
        with self.assertRaises(ExpressionDepthError):
            parse_expression("(" * 50 + "1" + ")" * 50)


class TestEvaluateWithData(unittest.TestCase):
    def test_comparisons(self) -> None:
        data = {"revenue": 15000, "statuscode": 1}
        self.assertTrue(evaluate_with_data("{revenue} > 10000 && {statuscode} === 1", data))
        self.assertFalse(evaluate_with_data("{revenue} < 10000", data))
        self.assertTrue(evaluate_with_data("({revenue} >= 15000) && !({statuscode} !== 1)", data))

    def test_strict_and_loose_equality(self) -> None:
        data = {"statuscode": 1, "name": "1"}
        self.assertTrue(evaluate_with_data("{statuscode} == '1'", data))
        self.assertFalse(evaluate_with_data("{statuscode} === '1'", data))
        self.assertTrue(evaluate_with_data("{missing} == null", data))
        self.assertTrue(evaluate_with_data("{name} != 2", data))

    def test_null_fields(self) -> None:
        data = {"name": None}
        self.assertTrue(evaluate_with_data("!{name}", data))
        self.assertFalse(evaluate_with_data("{name} > 0", data))
        self.assertFalse(evaluate_with_data("{name}.toUpperCase() === 'X'", data))

    def test_methods(self) -> None:
        data = {"name": "Acme", "createdon": datetime(2025, 6, 2, tzinfo=timezone.utc)}
        self.assertTrue(evaluate_with_data("{name}.toUpperCase() === 'ACME'", data))
        self.assertTrue(evaluate_with_data("{name}.length() === 4", data))
        self.assertTrue(evaluate_with_data("{createdon}.getFullYear() >= 2025", data))

    def test_unknown_method_fails_closed(self) -> None:
        self.assertFalse(evaluate_with_data("{name}.explode() || true", {"name": "Acme"}))

    def test_arithmetic_and_concat(self) -> None:
        data = {"a": 7, "b": 2, "name": "Acme"}
        self.assertTrue(evaluate_with_data("{a} % {b} === 1", data))
        self.assertTrue(evaluate_with_data("{a} * {b} - 4 === 10", data))
        self.assertTrue(evaluate_with_data("{name} + '!' === 'Acme!'", data))
        self.assertFalse(evaluate_with_data("{a} / 0 > 1", data))

    def test_date_comparison(self) -> None:
        data = {
            "start": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "end": datetime(2025, 6, 1, tzinfo=timezone.utc),
        }
        self.assertTrue(evaluate_with_data("{end} > {start}", data))
        self.assertTrue(evaluate_with_data("{end} - {start} > 0", data))

    def test_record_and_context_names(self) -> None:
        self.assertTrue(evaluate_with_data("record.name === 'Acme'", {}, {"name": "Acme"}))
        self.assertTrue(evaluate_with_data("context.role === 'admin'", {}, {}, {"role": "admin"}))
        self.assertFalse(evaluate_with_data("context._secret", {}, {}, object()))

    def test_syntax_error_is_false(self) -> None:
        self.assertFalse(evaluate_with_data("{a} >", {"a": 1}))
        self.assertFalse(evaluate_with_data("", {}))

    def test_truthy(self) -> None:
        self.assertFalse(truthy(0))
        self.assertFalse(truthy(""))
        self.assertFalse(truthy(float("nan")))
        self.assertTrue(truthy([]))
        self.assertTrue(truthy("0"))


class TestExpressionEvaluator(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.record = {
            "revenue": 15000,
            "statuscode": 1,
            "createdon": "2025-06-02T00:00:00Z",
            "_parentcustomerid_value": "a1",
            lookup_type_attr("parentcustomerid"): "account",
        }
        self.store = InMemoryDataStore()
        self.store.add_record("account", "a1", {"name": "Acme", "creditlimit": 500})
        resolver = TemplateResolver(CacheScope(RecordCache(), self.store.retrieve_record))
        self.evaluator = ExpressionEvaluator(self.record, resolver=resolver)

    def test_empty_expression_is_visible(self) -> None:
        self.assertTrue(self.evaluator.evaluate(None))
        self.assertTrue(self.evaluator.evaluate(""))

    def test_sync_evaluate(self) -> None:
        self.assertTrue(self.evaluator.evaluate("{revenue} > 10000 && {statuscode} === 1"))
        self.assertTrue(self.evaluator.evaluate("{createdon}.getMonth() === 5"))

    def test_sync_evaluate_rejects_lookup_paths(self) -> None:
        self.assertFalse(self.evaluator.evaluate("{parentcustomerid.name} === 'Acme'"))

    async def test_async_evaluate_resolves_lookups(self) -> None:
        self.assertTrue(await self.evaluator.evaluate_async("{parentcustomerid.name} === 'Acme'"))
        self.assertTrue(await self.evaluator.evaluate_async("{parentcustomerid.creditlimit} < {revenue}"))
        self.assertEqual(self.store.fetch_count("account"), 1)

    async def test_async_evaluate_broken_lookup(self) -> None:
        self.assertFalse(await self.evaluator.evaluate_async("{ownerid.name} === 'x'"))
        self.assertTrue(await self.evaluator.evaluate_async("{ownerid.name} == null"))


if __name__ == "__main__":
    unittest.main()
