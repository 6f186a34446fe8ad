"""
Value model

Tagged values that flow between result rows and search parameters,
the semantic parameter types a search can declare, and the coercion
rules that convert one into the other.

Variants: Text, Integer, TextArray, IntegerArray, Json, Null.
Coercion is pure: the same value and target type always give the same
result or the same CoercionError.
"""

import json
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, Optional

from .errors import CoercionError


class Value:
    """Base class of the value variants"""

    __slots__ = ()

    @staticmethod
    def from_json(node: Any) -> "Value":
        """Wrap a decoded JSON node, keeping strings and integers as scalars."""
        if node is None:
            return NULL
        if isinstance(node, bool):
            return Json(node)
        if isinstance(node, int):
            return Integer(node)
        if isinstance(node, str):
            return Text(node)
        return Json(node)

    @staticmethod
    def from_python(obj: Any) -> "Value":
        """Convert a value returned by the database driver."""
        if obj is None:
            return NULL
        if isinstance(obj, bool):
            return Text("true" if obj else "false")
        if isinstance(obj, int):
            return Integer(obj)
        if isinstance(obj, str):
            return Text(obj)
        if isinstance(obj, (list, tuple)):
            if obj and all(isinstance(item, int) and not isinstance(item, bool) for item in obj):
                return IntegerArray(obj)
            return TextArray(_array_item_text(item) for item in obj)
        if isinstance(obj, dict):
            return Json(obj)
        if isinstance(obj, (datetime, date)):
            return Text(obj.isoformat())
        return Text(str(obj))


@dataclass(frozen=True)
class Text(Value):
    value: str


@dataclass(frozen=True)
class Integer(Value):
    value: int


@dataclass(frozen=True)
class TextArray(Value):
    items: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class IntegerArray(Value):
    items: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Json(Value):
    value: Any

    @property
    def is_leaf(self) -> bool:
        return not isinstance(self.value, (dict, list))


@dataclass(frozen=True)
class Null(Value):
    pass


NULL = Null()


def _array_item_text(item: Any) -> str:
    if item is None:
        return "NULL"
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, (dict, list)):
        return json.dumps(item, ensure_ascii=False)
    return str(item)


# =============================================================================
# Semantic parameter types
# =============================================================================

_INT2 = (-(2 ** 15), 2 ** 15 - 1)
_INT4 = (-(2 ** 31), 2 ** 31 - 1)
_INT8 = (-(2 ** 63), 2 ** 63 - 1)

_TRUE_WORDS = {"true", "t", "yes", "y", "on", "1"}
_FALSE_WORDS = {"false", "f", "no", "n", "off", "0"}


def _parse_bool(text: str) -> bool:
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _parse_timestamptz(text: str) -> datetime:
    ts = datetime.fromisoformat(text.strip())
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class ParamType:
    """
    Semantic type of a search parameter.

    kind is the Value family the parameter holds after coercion: "text",
    "integer" or "json". Text kinds may carry a parser that both validates
    the text and produces the object handed to the driver.
    """
    name: str
    kind: str
    is_array: bool = False
    parser: Optional[Callable[[str], Any]] = None
    bounds: Optional[tuple] = None

    @property
    def element(self) -> "ParamType":
        if not self.is_array:
            return self
        return ParamType(self.name[:-2], self.kind, False, self.parser, self.bounds)

    def array_of(self) -> "ParamType":
        return ParamType(f"{self.name}[]", self.kind, True, self.parser, self.bounds)

    def coerce(self, value: Value) -> Value:
        return coerce(value, self)

    def to_driver(self, value: Value) -> Any:
        """Turn an already coerced value into the object bound by the driver."""
        if isinstance(value, Null):
            return None
        if self.is_array:
            element = self.element
            if isinstance(value, IntegerArray):
                return [element.to_driver(Integer(item)) for item in value.items]
            if isinstance(value, TextArray):
                return [element.to_driver(Text(item)) for item in value.items]
            raise CoercionError(f"{self.name} parameter expects an array, got {describe(value)}")
        if isinstance(value, Json):
            return value.value
        if isinstance(value, Integer):
            return value.value
        if isinstance(value, Text):
            return self.parser(value.value) if self.parser else value.value
        raise CoercionError(f"cannot bind {describe(value)} to a {self.name} parameter")


_SCALAR_TYPES: dict[str, ParamType] = {}
_NO_ARRAYS: set = set()


def _register(names: Iterable[str], kind: str, parser=None, bounds=None, arrays: bool = True):
    for name in names:
        _SCALAR_TYPES[name] = ParamType(name, kind, False, parser, bounds)
        if not arrays:
            _NO_ARRAYS.add(name)


_register(["text", "varchar"], "text")
_register(["integer", "int", "int4"], "integer", bounds=_INT4)
_register(["smallint", "int2"], "integer", bounds=_INT2)
_register(["bigint", "int8"], "integer", bounds=_INT8)
_register(["bool", "boolean"], "text", parser=_parse_bool)
_register(["float8", "float", "double precision"], "text", parser=float)
_register(["float4", "real"], "text", parser=float)
_register(["numeric", "decimal"], "text", parser=Decimal)
_register(["uuid"], "text", parser=uuid.UUID)
_register(["date"], "text", parser=lambda text: date.fromisoformat(text.strip()))
_register(["timestamp"], "text", parser=lambda text: datetime.fromisoformat(text.strip()))
_register(["timestamptz"], "text", parser=_parse_timestamptz)
_register(["json", "jsonb"], "json", arrays=False)

TEXT = _SCALAR_TYPES["text"]
INTEGER = _SCALAR_TYPES["integer"]


def lookup_param_type(name: Optional[str]) -> Optional[ParamType]:
    """Resolve a type name such as 'integer' or 'text[]'; None if unknown."""
    if name is None:
        return TEXT
    normalized = " ".join(name.strip().lower().split())
    is_array = normalized.endswith("[]")
    if is_array:
        normalized = normalized[:-2].rstrip()
    scalar = _SCALAR_TYPES.get(normalized)
    if scalar is None:
        return None
    if is_array:
        if normalized in _NO_ARRAYS:
            return None
        return scalar.array_of()
    return scalar


def known_param_types() -> list[str]:
    names = sorted(_SCALAR_TYPES)
    return names + [f"{name}[]" for name in names if name not in _NO_ARRAYS]


# =============================================================================
# Coercion
# =============================================================================

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def describe(value: Value) -> str:
    if isinstance(value, Json):
        return f"JSON {type(value.value).__name__} {format_value(value)}"
    return f"{type(value).__name__}({format_value(value)})"


def _json_leaf(value: Json) -> Value:
    node = value.value
    if node is None:
        return NULL
    if isinstance(node, bool):
        return Text("true" if node else "false")
    if isinstance(node, int):
        return Integer(node)
    if isinstance(node, float):
        if node.is_integer():
            return Integer(int(node))
        return Text(json.dumps(node))
    if isinstance(node, str):
        return Text(node)
    raise CoercionError(f"cannot use {describe(value)} as a scalar value")


def _check_bounds(number: int, param_type: ParamType) -> int:
    if param_type.bounds is not None:
        low, high = param_type.bounds
        if not low <= number <= high:
            raise CoercionError(f"{number} is out of range for type {param_type.element.name}")
    return number


def _coerce_integer(value: Value, param_type: ParamType) -> Value:
    if isinstance(value, Integer):
        _check_bounds(value.value, param_type)
        return value
    if isinstance(value, Text):
        text = value.value.strip()
        if not _INTEGER_RE.fullmatch(text):
            raise CoercionError(f"'{value.value}' is not a valid integer")
        return Integer(_check_bounds(int(text), param_type))
    if isinstance(value, Json):
        return _coerce_integer(_json_leaf(value), param_type)
    raise CoercionError(f"cannot coerce {describe(value)} to {param_type.name}")


def _coerce_text(value: Value, param_type: ParamType) -> Value:
    if isinstance(value, Integer):
        value = Text(str(value.value))
    elif isinstance(value, Json):
        value = _json_leaf(value)
        if not isinstance(value, Text):
            return _coerce_text(value, param_type)
    if not isinstance(value, Text):
        raise CoercionError(f"cannot coerce {describe(value)} to {param_type.name}")
    if param_type.parser is not None:
        try:
            param_type.parser(value.value)
        except (ValueError, ArithmeticError) as e:
            raise CoercionError(f"'{value.value}' is not a valid {param_type.name}: {e}") from e
    return value


def _coerce_json(value: Value) -> Value:
    if isinstance(value, Json):
        return value
    if isinstance(value, Text):
        try:
            return Json(json.loads(value.value))
        except json.JSONDecodeError as e:
            raise CoercionError(f"'{value.value}' is not valid JSON: {e.msg}") from e
    if isinstance(value, Integer):
        return Json(value.value)
    if isinstance(value, (TextArray, IntegerArray)):
        return Json(list(value.items))
    raise CoercionError(f"cannot coerce {describe(value)} to json")


def _elements(value: Value) -> list:
    if isinstance(value, TextArray):
        return [Text(item) for item in value.items]
    if isinstance(value, IntegerArray):
        return [Integer(item) for item in value.items]
    if isinstance(value, Json):
        if isinstance(value.value, list):
            return [Value.from_json(item) for item in value.value]
        if isinstance(value.value, dict):
            raise CoercionError(f"cannot coerce {describe(value)} to an array")
    return [value]


def make_array(param_type: ParamType, elements: Iterable[Value]) -> Value:
    """Coerce each element to the element type and pack them into one array."""
    element_type = param_type.element
    coerced = []
    for element in elements:
        item = coerce(element, element_type)
        if isinstance(item, Null):
            raise CoercionError(f"NULL elements are not supported in {param_type.name} parameters")
        coerced.append(item.value)
    if element_type.kind == "integer":
        return IntegerArray(coerced)
    return TextArray(coerced)


def coerce(value: Value, param_type: ParamType) -> Value:
    """Convert value to param_type or raise CoercionError."""
    if isinstance(value, Null) or (isinstance(value, Json) and value.value is None):
        return NULL
    if param_type.is_array:
        return make_array(param_type, _elements(value))
    if isinstance(value, (TextArray, IntegerArray)):
        if param_type.kind == "json":
            return _coerce_json(value)
        raise CoercionError(f"cannot coerce {describe(value)} to scalar type {param_type.name}")
    if param_type.kind == "json":
        return _coerce_json(value)
    if param_type.kind == "integer":
        return _coerce_integer(value, param_type)
    return _coerce_text(value, param_type)


def parse_input(raw: str, param_type: ParamType) -> Value:
    """Interpret text typed by the user for a parameter of param_type."""
    if param_type.is_array:
        if not raw.strip():
            return make_array(param_type, [])
        return coerce(TextArray(part.strip() for part in raw.split(",")), param_type)
    return coerce(Text(raw), param_type)


def format_value(value: Value) -> str:
    """Render a value as a single line for tables and titles."""
    if isinstance(value, Null):
        return "<NULL>"
    if isinstance(value, Text):
        return value.value
    if isinstance(value, Integer):
        return str(value.value)
    if isinstance(value, (TextArray, IntegerArray)):
        return "{" + ",".join(str(item) for item in value.items) + "}"
    if isinstance(value, Json):
        return json.dumps(value.value, ensure_ascii=False)
    return repr(value)


# =============================================================================
# Rows
# =============================================================================

class Row:
    """
    One result record: ordered (column name, Value) pairs with unique names.
    Rows are immutable once built.
    """

    __slots__ = ("_columns", "_values", "_index")

    def __init__(self, pairs: Iterable[tuple]):
        columns = []
        values = []
        index = {}
        for name, value in pairs:
            if name in index:
                raise ValueError(f"duplicate column name '{name}'")
            if not isinstance(value, Value):
                raise TypeError(f"column '{name}' holds {type(value).__name__}, expected a Value")
            index[name] = len(columns)
            columns.append(name)
            values.append(value)
        object.__setattr__(self, "_columns", tuple(columns))
        object.__setattr__(self, "_values", tuple(values))
        object.__setattr__(self, "_index", index)

    def __setattr__(self, name, value):
        raise AttributeError("Row is immutable")

    @classmethod
    def of(cls, **columns: Any) -> "Row":
        """Build a row from keyword arguments, converting plain Python values."""
        return cls(
            (name, value if isinstance(value, Value) else Value.from_python(value))
            for name, value in columns.items()
        )

    @property
    def columns(self) -> tuple:
        return self._columns

    @property
    def values(self) -> tuple:
        return self._values

    def items(self) -> Iterator[tuple]:
        return iter(zip(self._columns, self._values))

    def get(self, column: str, default: Optional[Value] = None) -> Optional[Value]:
        position = self._index.get(column)
        return default if position is None else self._values[position]

    def __getitem__(self, column: str) -> Value:
        position = self._index.get(column)
        if position is None:
            raise KeyError(column)
        return self._values[position]

    def __contains__(self, column: object) -> bool:
        return column in self._index

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[tuple]:
        return self.items()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._columns == other._columns and self._values == other._values

    def __hash__(self):
        return hash(self._columns)

    def __repr__(self) -> str:
        body = ", ".join(f"{name}={format_value(value)}" for name, value in self.items())
        return f"Row({body})"
