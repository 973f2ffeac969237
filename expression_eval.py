"""Visibility expression evaluator.

Expressions reference record fields with ``{path}`` and combine them with
comparison and logical operators, e.g. ``{revenue} > 10000 && {statuscode} === 1``.
Field values are collected into a data map first; the expression text is then
tokenized, parsed to an AST and evaluated against that map. Nothing in the
expression is ever handed to the Python compiler.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List

from template_resolve import TemplateResolver
from token_parse import extract_tokens
from value_coerce import coerce_value, stringify
from value_methods import NO_METHOD, call_method

logger = logging.getLogger("smartbutton.expression")


@dataclass
class ExpressionEvalError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


class ExpressionSchemaError(ExpressionEvalError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("EXPR_SCHEMA_ERROR", message, path)


class ExprParseError(ExpressionEvalError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("EXPR_PARSE_ERROR", message, path)


class ExpressionDepthError(ExpressionEvalError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("EXPR_DEPTH_EXCEEDED", message, path)


class ExprTypeError(ExpressionEvalError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("EXPR_TYPE_ERROR", message, path)


class ExprMethodError(ExpressionEvalError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("EXPR_METHOD_UNKNOWN", message, path)


# -- tokenizer ---------------------------------------------------------------


@dataclass
class Tok:
    kind: str
    value: str
    pos: int


_TOKEN_RE = re.compile(
    r"""
    (?P<FIELD>\{[^}]+\})
  | (?P<NUMBER>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<STRING>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
  | (?P<OP>===|!==|==|!=|<=|>=|&&|\|\||[<>!+\-*/%(),.])
  | (?P<ID>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<SKIP>\s+)
  | (?P<MISMATCH>.)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}
NAMES = ("data", "record", "context")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0"}


def tokenize(source: str) -> List[Tok]:
    tokens: List[Tok] = []
    for match in _TOKEN_RE.finditer(source):
        kind = match.lastgroup or "MISMATCH"
        if kind == "SKIP":
            continue
        if kind == "MISMATCH":
            raise ExprParseError(f"Unexpected character {match.group(0)!r}", f"@{match.start()}")
        tokens.append(Tok(kind, match.group(0), match.start()))
    tokens.append(Tok("EOF", "", len(source)))
    return tokens


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# -- AST -----------------------------------------------------------------------


@dataclass
class Expr:
    pass


@dataclass
class Literal(Expr):
    value: Any


@dataclass
class FieldRef(Expr):
    path: str


@dataclass
class Name(Expr):
    name: str


@dataclass
class Member(Expr):
    target: Expr
    name: str


@dataclass
class MethodCall(Expr):
    target: Expr
    name: str
    args: List[Expr]


@dataclass
class Unary(Expr):
    op: str
    operand: Expr


@dataclass
class Binary(Expr):
    left: Expr
    op: str
    right: Expr


class _Parser:
    def __init__(self, tokens: List[Tok], depth_limit: int) -> None:
        self.tokens = tokens
        self.pos = 0
        self.depth = 0
        self.depth_limit = depth_limit

    def cur(self) -> Tok:
        return self.tokens[self.pos]

    def match(self, kind: str, *values: str) -> Tok | None:
        tok = self.cur()
        if tok.kind == kind and (not values or tok.value in values):
            self.pos += 1
            return tok
        return None

    def expect(self, kind: str, value: str) -> Tok:
        tok = self.match(kind, value)
        if tok is None:
            found = self.cur()
            raise ExprParseError(f"Expected {value!r}, found {found.value or 'end'!r}", f"@{found.pos}")
        return tok

    def parse(self) -> Expr:
        expr = self.parse_expr()
        if self.cur().kind != "EOF":
            tok = self.cur()
            raise ExprParseError(f"Unexpected token {tok.value!r}", f"@{tok.pos}")
        return expr

    def parse_expr(self) -> Expr:
        self.depth += 1
        if self.depth > self.depth_limit:
            raise ExpressionDepthError("Depth limit exceeded", f"@{self.cur().pos}")
        try:
            return self.parse_binary(0)
        finally:
            self.depth -= 1

    _LEVELS = (
        ("||",),
        ("&&",),
        ("===", "!==", "==", "!="),
        ("<", "<=", ">", ">="),
        ("+", "-"),
        ("*", "/", "%"),
    )

    def parse_binary(self, level: int) -> Expr:
        if level == len(self._LEVELS):
            return self.parse_unary()
        expr = self.parse_binary(level + 1)
        while True:
            tok = self.match("OP", *self._LEVELS[level])
            if tok is None:
                return expr
            expr = Binary(expr, tok.value, self.parse_binary(level + 1))

    def parse_unary(self) -> Expr:
        tok = self.match("OP", "!", "-")
        if tok is not None:
            self.depth += 1
            if self.depth > self.depth_limit:
                raise ExpressionDepthError("Depth limit exceeded", f"@{tok.pos}")
            try:
                return Unary(tok.value, self.parse_unary())
            finally:
                self.depth -= 1
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        expr = self.parse_primary()
        while self.match("OP", "."):
            name = self.match("ID")
            if name is None:
                raise ExprParseError("Expected member name after '.'", f"@{self.cur().pos}")
            if self.match("OP", "("):
                args: List[Expr] = []
                if not self.match("OP", ")"):
                    while True:
                        args.append(self.parse_expr())
                        if self.match("OP", ")"):
                            break
                        self.expect("OP", ",")
                expr = MethodCall(expr, name.value, args)
            else:
                expr = Member(expr, name.value)
        return expr

    def parse_primary(self) -> Expr:
        tok = self.cur()
        if self.match("NUMBER"):
            return Literal(int(tok.value) if tok.value.isdigit() else float(tok.value))
        if self.match("STRING"):
            return Literal(_unquote(tok.value))
        if self.match("FIELD"):
            return FieldRef(tok.value[1:-1])
        if self.match("ID"):
            if tok.value in _KEYWORDS:
                return Literal(_KEYWORDS[tok.value])
            if tok.value in NAMES:
                return Name(tok.value)
            raise ExprParseError(f"Unknown identifier {tok.value!r}", f"@{tok.pos}")
        if self.match("OP", "("):
            expr = self.parse_expr()
            self.expect("OP", ")")
            return expr
        raise ExprParseError(f"Unexpected token {tok.value or 'end'!r}", f"@{tok.pos}")


def parse_expression(source: str, depth_limit: int = 32) -> Expr:
    if not isinstance(source, str):
        raise ExpressionSchemaError("expression must be string", "$")
    return _Parser(tokenize(source), depth_limit).parse()


# -- evaluation ----------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if _is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def _to_number(value: Any) -> float | None:
    if _is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        try:
            return float(value.strip()) if value.strip() else 0
        except ValueError:
            return None
    return None


def _strict_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) != isinstance(right, str) and (_is_number(left) or _is_number(right)):
        lnum, rnum = _to_number(left), _to_number(right)
        return lnum is not None and rnum is not None and lnum == rnum
    if isinstance(left, bool) or isinstance(right, bool):
        return _to_number(left) == _to_number(right)
    return _strict_equals(left, right)


def _compare(op: str, left: Any, right: Any, path: str) -> bool:
    if left is None or right is None:
        return False
    if isinstance(left, str) and isinstance(right, str):
        pass
    elif isinstance(left, date) and isinstance(right, date):
        pass
    else:
        left, right = _to_number(left), _to_number(right)
        if left is None or right is None:
            raise ExprTypeError(f"Cannot compare with {op}", path)
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _arith(op: str, left: Any, right: Any, path: str) -> Any:
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return stringify(left) + stringify(right)
    if op == "-" and isinstance(left, datetime) and isinstance(right, datetime):
        return (left - right).total_seconds() * 1000
    lnum, rnum = _to_number(left), _to_number(right)
    if lnum is None or rnum is None:
        raise ExprTypeError(f"Operator {op} requires numbers", path)
    if op == "+":
        return lnum + rnum
    if op == "-":
        return lnum - rnum
    if op == "*":
        return lnum * rnum
    if rnum == 0:
        raise ExprTypeError("Division by zero", path)
    if op == "/":
        return lnum / rnum
    return math.fmod(lnum, rnum)


class _Scope:
    def __init__(self, data: dict, record: dict, context: Any) -> None:
        self.names = {"data": data, "record": record, "context": context}
        self.data = data


class _NullChain(Exception):
    """Raised to short-circuit a field-rooted chain whose field is null."""


def _read_member(target: Any, name: str, path: str) -> Any:
    if isinstance(target, dict):
        return target.get(name)
    if target is None:
        raise ExprTypeError(f"Cannot read {name!r} of null", path)
    if name.startswith("_"):
        raise ExprTypeError(f"Member {name!r} is not accessible", path)
    return getattr(target, name, None)


def _eval_chain(node: Expr, scope: _Scope, path: str) -> Any:
    if isinstance(node, FieldRef):
        value = scope.data.get(node.path)
        if value is None:
            raise _NullChain()
        return value
    if isinstance(node, Member):
        target = _eval_chain(node.target, scope, path)
        return _read_member(target, node.name, f"{path}.{node.name}")
    if isinstance(node, MethodCall):
        target = _eval_chain(node.target, scope, path)
        args = [eval_ast(arg, scope, f"{path}.{node.name}()") for arg in node.args]
        result = call_method(target, node.name, args)
        if result is NO_METHOD:
            raise ExprMethodError(f"Unknown method {node.name!r}", f"{path}.{node.name}")
        return result
    return eval_ast(node, scope, path)


def eval_ast(node: Expr, scope: _Scope, path: str = "$") -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, FieldRef):
        return scope.data.get(node.path)
    if isinstance(node, Name):
        return scope.names[node.name]
    if isinstance(node, (Member, MethodCall)):
        try:
            return _eval_chain(node, scope, path)
        except _NullChain:
            return None
    if isinstance(node, Unary):
        value = eval_ast(node.operand, scope, path)
        if node.op == "!":
            return not truthy(value)
        number = _to_number(value)
        if number is None:
            raise ExprTypeError("Unary minus requires a number", path)
        return -number
    if isinstance(node, Binary):
        op = node.op
        left = eval_ast(node.left, scope, f"{path}.left")
        if op == "&&":
            return eval_ast(node.right, scope, f"{path}.right") if truthy(left) else left
        if op == "||":
            return left if truthy(left) else eval_ast(node.right, scope, f"{path}.right")
        right = eval_ast(node.right, scope, f"{path}.right")
        if op == "===":
            return _strict_equals(left, right)
        if op == "!==":
            return not _strict_equals(left, right)
        if op == "==":
            return _loose_equals(left, right)
        if op == "!=":
            return not _loose_equals(left, right)
        if op in {"<", "<=", ">", ">="}:
            return _compare(op, left, right, path)
        return _arith(op, left, right, path)
    raise ExpressionSchemaError("Invalid expression node", path)


def evaluate_with_data(expression: str, data: dict, record: dict | None = None, context: Any = None) -> bool:
    """Evaluate a parsed-on-demand expression; any fault yields False."""
    try:
        tree = parse_expression(expression)
        return truthy(eval_ast(tree, _Scope(data, record or {}, context)))
    except Exception as exc:
        logger.warning("expression_failed expression=%r error=%s", expression, exc)
        return False


class ExpressionEvaluator:
    """Evaluates visibility expressions against one base record."""

    def __init__(self, record: dict | None, context: Any = None, resolver: TemplateResolver | None = None) -> None:
        self.record = record if isinstance(record, dict) else {}
        self.context = context
        self.resolver = resolver

    def field_references(self, expression: str) -> List[str]:
        return [token.field_path for token in extract_tokens(expression)]

    def build_data(self, references: List[str]) -> Dict[str, Any]:
        return {ref: coerce_value(self.record.get(ref)) for ref in references if "." not in ref}

    async def build_data_async(self, references: List[str]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for ref in references:
            if ref in data:
                continue
            if "." in ref and self.resolver is not None:
                value = await self.resolver.resolve_value(ref, self.record)
            else:
                value = self.record.get(ref)
            data[ref] = coerce_value(value)
        return data

    def evaluate(self, expression: str | None) -> bool:
        if not expression:
            return True
        references = self.field_references(expression)
        if any("." in ref for ref in references):
            logger.warning("expression_needs_async expression=%r", expression)
            return False
        return evaluate_with_data(expression, self.build_data(references), self.record, self.context)

    async def evaluate_async(self, expression: str | None) -> bool:
        if not expression:
            return True
        try:
            data = await self.build_data_async(self.field_references(expression))
        except Exception as exc:
            logger.warning("expression_data_failed expression=%r error=%s", expression, exc)
            return False
        return evaluate_with_data(expression, data, self.record, self.context)
