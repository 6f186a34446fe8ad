"""
JSONPath extraction for link bindings

Supported syntax:
    $              the document root
    .key  ['key']  object member
    [*]            every element of an array
    .*             every member of an object or element of an array
    [n]            one array element, negative n counts from the end
    ..key  ..*     recursive descent, in document order

A path may also be given as a list of segments: plain strings are literal
keys and strings starting with '$' are JSONPath fragments, so
["posts", "$[*].postId"] is the same as "$.posts[*].postId".

Evaluation never raises. A missing key or a step applied to a value of
the wrong shape simply contributes no match for that branch.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Union

from .errors import JsonPathSyntaxError
from .values import Value

_NAME_RE = re.compile(r"[^.\[\]\s*'\"]+")
_INDEX_RE = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class Key:
    name: str

    def apply(self, node: Any) -> Iterator[Any]:
        if isinstance(node, dict) and self.name in node:
            yield node[self.name]

    def __str__(self):
        if _NAME_RE.fullmatch(self.name):
            return f".{self.name}"
        escaped = self.name.replace("\\", "\\\\").replace("'", "\\'")
        return f"['{escaped}']"


@dataclass(frozen=True)
class ArrayWildcard:

    def apply(self, node: Any) -> Iterator[Any]:
        if isinstance(node, list):
            yield from node

    def __str__(self):
        return "[*]"


@dataclass(frozen=True)
class Wildcard:

    def apply(self, node: Any) -> Iterator[Any]:
        if isinstance(node, dict):
            yield from node.values()
        elif isinstance(node, list):
            yield from node

    def __str__(self):
        return ".*"


@dataclass(frozen=True)
class Index:
    position: int

    def apply(self, node: Any) -> Iterator[Any]:
        if isinstance(node, list) and -len(node) <= self.position < len(node):
            yield node[self.position]

    def __str__(self):
        return f"[{self.position}]"


@dataclass(frozen=True)
class Descendant:
    name: Optional[str] = None

    def apply(self, node: Any) -> Iterator[Any]:
        for visited in _walk(node):
            if self.name is None:
                yield from Wildcard().apply(visited)
            elif isinstance(visited, dict) and self.name in visited:
                yield visited[self.name]

    def __str__(self):
        return f"..{self.name or '*'}"


def _walk(node: Any) -> Iterator[Any]:
    yield node
    if isinstance(node, dict):
        for child in node.values():
            yield from _walk(child)
    elif isinstance(node, list):
        for child in node:
            yield from _walk(child)


Step = Union[Key, ArrayWildcard, Wildcard, Index, Descendant]


class JsonPath:
    """A compiled path: an ordered list of steps."""

    def __init__(self, steps: Sequence[Step]):
        self.steps = tuple(steps)

    def find(self, document: Any) -> list:
        """Return the raw JSON nodes matched by the path, in document order."""
        nodes = [document]
        for step in self.steps:
            nodes = [child for node in nodes for child in step.apply(node)]
        return nodes

    def evaluate(self, document: Any) -> list:
        return [Value.from_json(node) for node in self.find(document)]

    def __eq__(self, other):
        return isinstance(other, JsonPath) and self.steps == other.steps

    def __hash__(self):
        return hash(self.steps)

    def __str__(self):
        return "$" + "".join(str(step) for step in self.steps)

    def __repr__(self):
        return f"JsonPath({str(self)!r})"


def _read_quoted(expression: str, pos: int) -> tuple:
    quote = expression[pos]
    chars = []
    pos += 1
    while pos < len(expression):
        ch = expression[pos]
        if ch == "\\" and pos + 1 < len(expression):
            chars.append(expression[pos + 1])
            pos += 2
            continue
        if ch == quote:
            return "".join(chars), pos + 1
        chars.append(ch)
        pos += 1
    raise JsonPathSyntaxError(expression, pos, "unterminated string")


def _read_bracket(expression: str, pos: int) -> tuple:
    start = pos
    pos += 1
    while pos < len(expression) and expression[pos] == " ":
        pos += 1
    if pos >= len(expression):
        raise JsonPathSyntaxError(expression, start, "unterminated '['")

    if expression[pos] in "'\"":
        name, pos = _read_quoted(expression, pos)
        step = Key(name)
    else:
        end = expression.find("]", pos)
        if end < 0:
            raise JsonPathSyntaxError(expression, start, "unterminated '['")
        inner = expression[pos:end].strip()
        if inner == "*":
            step = ArrayWildcard()
        elif _INDEX_RE.fullmatch(inner):
            step = Index(int(inner))
        else:
            raise JsonPathSyntaxError(expression, pos, f"unsupported selector '[{inner}]'")
        pos = end

    while pos < len(expression) and expression[pos] == " ":
        pos += 1
    if pos >= len(expression) or expression[pos] != "]":
        raise JsonPathSyntaxError(expression, pos, "expected ']'")
    return step, pos + 1


def parse_expression(expression: str) -> list:
    """Parse one '$'-rooted JSONPath expression into steps."""
    text = expression.strip()
    if not text.startswith("$"):
        raise JsonPathSyntaxError(expression, 0, "expression must start with '$'")

    steps = []
    pos = 1
    while pos < len(text):
        if text.startswith("..", pos):
            pos += 2
            if text.startswith("*", pos):
                steps.append(Descendant())
                pos += 1
                continue
            match = _NAME_RE.match(text, pos)
            if not match:
                raise JsonPathSyntaxError(expression, pos, "expected a member name after '..'")
            steps.append(Descendant(match.group(0)))
            pos = match.end()
        elif text[pos] == ".":
            pos += 1
            if text.startswith("*", pos):
                steps.append(Wildcard())
                pos += 1
                continue
            match = _NAME_RE.match(text, pos)
            if not match:
                raise JsonPathSyntaxError(expression, pos, "expected a member name after '.'")
            steps.append(Key(match.group(0)))
            pos = match.end()
        elif text[pos] == "[":
            step, pos = _read_bracket(text, pos)
            steps.append(step)
        else:
            raise JsonPathSyntaxError(expression, pos, f"unexpected character {text[pos]!r}")
    return steps


def compile_path(path: Union[str, Sequence[str], JsonPath]) -> JsonPath:
    """Compile a JSONPath string or a list of segments."""
    if isinstance(path, JsonPath):
        return path
    if isinstance(path, str):
        return JsonPath(parse_expression(path))

    steps = []
    for segment in path:
        if not isinstance(segment, str):
            raise JsonPathSyntaxError(str(path), 0, f"path segments must be strings, got {segment!r}")
        if segment.startswith("$"):
            steps.extend(parse_expression(segment))
        else:
            steps.append(Key(segment))
    return JsonPath(steps)


def evaluate(document: Any, path: Union[str, Sequence[str], JsonPath]) -> list:
    """Evaluate path against a decoded JSON document, returning Values."""
    return compile_path(path).evaluate(document)
