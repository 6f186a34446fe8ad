"""
Error taxonomy for dbdrill

ConfigError is fatal and only raised while loading the resources file.
Everything else is local: the navigator catches it, keeps the current view
and shows the message.
"""

from typing import Optional


class DbDrillError(Exception):
    """Base class for all dbdrill errors"""


class ConfigError(DbDrillError):
    """Malformed or internally inconsistent resources configuration"""

    def __init__(self, kind: str, path: str, message: str):
        self.kind = kind
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


class JsonPathSyntaxError(DbDrillError, ValueError):
    """A JSONPath expression could not be parsed"""

    def __init__(self, expression: str, position: int, reason: str):
        self.expression = expression
        self.position = position
        super().__init__(f"invalid JSONPath {expression!r} at offset {position}: {reason}")


class CoercionError(DbDrillError, ValueError):
    """A value cannot be converted to the required parameter type"""


class BindError(DbDrillError):
    """A link parameter could not be bound from the source row"""

    kind = "bind_error"


class MissingColumn(BindError):
    kind = "missing_column"

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"column '{column}' is not part of the selected row")


class NotJson(BindError):
    kind = "not_json"

    def __init__(self, column: str, found: Optional[str] = None):
        self.column = column
        detail = f" (found {found})" if found else ""
        super().__init__(f"column '{column}' does not hold a JSON value{detail}")


class ArityMismatch(BindError):
    kind = "arity_mismatch"

    def __init__(self, param: str, matches: int):
        self.param = param
        self.matches = matches
        super().__init__(f"expected 1 value for parameter '{param}', got {matches}")


class ExecutionError(DbDrillError):
    """The database reported a failure while running a search"""
