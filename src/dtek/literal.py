"""Safe extraction of literal data from inline JavaScript.

The shutdowns page ships its data as statements like::

    DisconSchedule.streets = {"м. Одеса": ["вул. Педагогічна", ...]};

mixed into scripts that also contain arbitrary code. The script is parsed
with a full grammar parser (esprima) and only the right-hand side of the
wanted assignment is walked. Blocks the parser rejects as a whole (newer
syntax in unrelated statements) fall back to parsing each wanted statement
on its own. The walker knows literals, arrays, objects and
negative numbers; anything else is rejected, nothing is ever executed.
"""

import re
from collections.abc import Iterable, Iterator
from typing import Any

import esprima

from src.dtek.errors import LiteralEvaluationError
from src.dtek.logging import get_logger

log = get_logger(__name__)

MAX_LITERAL_DEPTH = 50

_QUOTES = "\"'`"
_OPENERS = "([{"
_CLOSERS = ")]}"


def _number(value: int | float) -> int | float:
    # esprima reports decimal literals as float; JS has no int/float split
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def property_key(prop: Any) -> str | None:
    """Key of an object-literal Property as a string, None if not static."""
    if getattr(prop, "type", None) != "Property":
        return None
    key = prop.key
    if not prop.computed and getattr(key, "type", None) == "Identifier":
        return key.name
    if getattr(key, "type", None) == "Literal" and getattr(key, "regex", None) is None:
        value = key.value
        if _is_number(value):
            return str(_number(value))
        return str(value)
    return None


def evaluate_literal(node: Any, depth: int = 0, *, max_depth: int = MAX_LITERAL_DEPTH) -> Any:
    """Turn a literal-only expression node into plain Python data.

    Args:
        node: esprima expression node.
        depth: Current nesting depth (callers leave the default).
        max_depth: Nesting bound; deeper payloads are rejected.

    Returns:
        str, int, float, bool, None, list or dict.

    Raises:
        LiteralEvaluationError: On any non-literal node or when nesting exceeds max_depth.
    """
    if depth > max_depth:
        raise LiteralEvaluationError(f"Literal nesting exceeds maximum depth of {max_depth}")

    node_type = getattr(node, "type", None)

    if node_type == "Literal":
        if getattr(node, "regex", None) is not None:
            raise LiteralEvaluationError("Regular expression literals are not data", "Literal")
        value = node.value
        return _number(value) if _is_number(value) else value

    if node_type == "ArrayExpression":
        return [
            evaluate_literal(element, depth + 1, max_depth=max_depth) for element in node.elements
        ]

    if node_type == "ObjectExpression":
        out: dict[str, Any] = {}
        for prop in node.properties:
            if getattr(prop, "type", None) != "Property" or prop.kind != "init" or prop.method:
                raise LiteralEvaluationError(
                    f"Unsupported object member: {getattr(prop, 'type', None)}",
                    getattr(prop, "type", None),
                )
            key = property_key(prop)
            if key is None:
                raise LiteralEvaluationError("Computed object keys are not supported", "Property")
            out[key] = evaluate_literal(prop.value, depth + 1, max_depth=max_depth)
        return out

    if node_type == "UnaryExpression":
        argument = node.argument
        if (
            node.operator == "-"
            and getattr(argument, "type", None) == "Literal"
            and _is_number(argument.value)
        ):
            return -_number(argument.value)
        raise LiteralEvaluationError(
            f"Unsupported unary expression: {node.operator}", "UnaryExpression"
        )

    raise LiteralEvaluationError(f"Unsupported AST node type: {node_type}", node_type)


def member_matches(node: Any, object_name: str, property_name: str) -> bool:
    """True if ``node`` is ``object_name.property_name`` or ``object_name["property_name"]``."""
    if getattr(node, "type", None) != "MemberExpression":
        return False
    obj = node.object
    if getattr(obj, "type", None) != "Identifier" or obj.name != object_name:
        return False
    prop = node.property
    if not node.computed and getattr(prop, "type", None) == "Identifier":
        return prop.name == property_name
    if node.computed and getattr(prop, "type", None) == "Literal":
        return str(prop.value) == property_name
    return False


def _collect_assignments(
    program: Any, object_name: str, wanted: list[str], found: dict[str, Any]
) -> None:
    for statement in program.body:
        if getattr(statement, "type", None) != "ExpressionStatement":
            continue
        expression = statement.expression
        if getattr(expression, "type", None) != "AssignmentExpression":
            continue
        if expression.operator != "=":
            continue
        for name in wanted:
            if name not in found and member_matches(expression.left, object_name, name):
                found[name] = expression.right
        if all(name in found for name in wanted):
            return


def _string_end(code: str, start: int) -> int:
    """Index just past the string literal opening at ``start``."""
    quote = code[start]
    i = start + 1
    while i < len(code):
        ch = code[i]
        if ch == "\\":
            i += 2
        elif ch == quote:
            return i + 1
        elif ch == "\n" and quote != "`":
            return i
        else:
            i += 1
    return len(code)


def _code_chars(code: str, start: int = 0) -> Iterator[tuple[int, str]]:
    """(index, char) pairs of ``code`` with string bodies and comments skipped.

    A string literal shows up once, as its opening quote.
    """
    i, n = start, len(code)
    while i < n:
        ch = code[i]
        if ch in _QUOTES:
            yield i, ch
            i = _string_end(code, i)
        elif code.startswith("//", i):
            newline = code.find("\n", i)
            i = n if newline == -1 else newline
        elif code.startswith("/*", i):
            close = code.find("*/", i + 2)
            i = n if close == -1 else close + 2
        else:
            yield i, ch
            i += 1


def _expression_end(code: str, start: int) -> int:
    """End of the expression starting at ``start``.

    That is the first ``;`` or line break outside brackets (once the expression
    has begun), or a closing bracket without an opener.
    """
    depth = 0
    started = False
    for i, ch in _code_chars(code, start):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            if depth == 0:
                return i
            depth -= 1
        elif depth == 0 and (ch == ";" or (ch == "\n" and started)):
            return i
        started = started or not ch.isspace()
    return len(code)


def _assignment_pattern(object_name: str, property_name: str) -> re.Pattern[str]:
    obj = re.escape(object_name)
    prop = re.escape(property_name)
    return re.compile(
        rf"{obj}\s*(?:\.\s*{prop}(?![\w$])|\[\s*(['\"]){prop}\1\s*\])\s*=(?![=>])"
    )


def _isolated_assignments(code: str, object_name: str, wanted: list[str]) -> dict[str, Any]:
    """Cut each top-level ``object_name.<prop> = ...`` out of ``code`` and parse it alone.

    Used when the whole script is beyond the parser's grammar: only the wanted
    statements have to be.
    """
    patterns = {name: _assignment_pattern(object_name, name) for name in wanted}
    found: dict[str, Any] = {}
    depth = 0
    previous = ""
    for i, ch in _code_chars(code):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth = max(depth - 1, 0)
        elif (
            depth == 0
            and ch == object_name[0]
            and not (previous.isalnum() or previous in ("_", "$", "."))
        ):
            for name, pattern in patterns.items():
                if name in found:
                    continue
                match = pattern.match(code, i)
                if match is None:
                    continue
                statement = code[i : _expression_end(code, match.end())]
                try:
                    program = esprima.parseScript(f"{statement};")
                except Exception as e:
                    log.debug("isolated_assignment_parse_failed", name=name, error=str(e))
                    continue
                _collect_assignments(program, object_name, [name], found)
            if len(found) == len(wanted):
                break
        previous = ch
    return found


def find_assignments(
    code: str, object_name: str, property_names: Iterable[str]
) -> dict[str, Any]:
    """Find top-level ``object_name.<prop> = <expr>`` statements in a script.

    Only the first assignment per property counts. When the script as a whole
    does not parse (newer syntax elsewhere in the block), each wanted statement
    is cut out and parsed on its own; ones that still do not parse are missing
    from the result.

    Returns:
        Mapping of property name to the unevaluated right-hand side node.
    """
    wanted = list(property_names)
    found: dict[str, Any] = {}
    if not wanted:
        return found
    try:
        program = esprima.parseScript(code)
    except Exception as e:
        log.debug("script_parse_failed", error=str(e), length=len(code))
        found = _isolated_assignments(code, object_name, wanted)
        log.debug("isolated_assignments", found=sorted(found), wanted=wanted)
        return found

    _collect_assignments(program, object_name, wanted, found)
    return found
