"""
Link resolution

Binds the parameters of a link's target search from the selected row
(directly from a column, or by JSONPath extraction from a JSON column)
and hands the query to the executor.
"""

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from .errors import ArityMismatch, BindError, MissingColumn, NotJson
from .registry import ColumnBinding, ConfigModel, Link, ParamSpec, PathBinding, Search
from .values import Json, Row, Value, coerce, format_value, make_array

logger = logging.getLogger(__name__)


class SearchExecutor(Protocol):
    """Runs a search query with bound values and returns the result rows."""

    async def execute_search(
        self,
        query: str,
        values: Sequence[Value],
        param_types: Sequence,
    ) -> list: ...


@dataclass(frozen=True)
class SearchResult:
    entity_id: str
    title: str
    search: Search
    values: tuple
    rows: tuple


def _column(row: Row, column: str) -> Value:
    value = row.get(column)
    if value is None:
        raise MissingColumn(column)
    return value


def extract(binding: PathBinding, row: Row) -> list:
    """Run the binding's JSONPath against its column, in document order."""
    value = _column(row, binding.column)
    if not isinstance(value, Json):
        raise NotJson(binding.column, type(value).__name__)
    return binding.path.evaluate(value.value)


def bind_value(binding, param: ParamSpec, row: Row) -> Value:
    """Produce the value of one target parameter from the source row."""
    if isinstance(binding, ColumnBinding):
        return coerce(_column(row, binding.column), param.type)

    if isinstance(binding, PathBinding):
        matches = extract(binding, row)
        if param.type.is_array:
            return make_array(param.type, matches)
        if len(matches) != 1:
            raise ArityMismatch(param.name, len(matches))
        return coerce(matches[0], param.type)

    raise TypeError(f"unsupported binding {binding!r}")


def resolve(config: ConfigModel, link: Link, row: Row) -> list:
    """Bound values for the link's target search, in parameter order."""
    target = config.link_target(link)
    return [bind_value(binding, param, row) for binding, param in zip(link.bindings, target.params)]


def condition_holds(link: Link, row: Row) -> bool:
    """True when the link has no condition or the row satisfies it."""
    if link.condition is None:
        return True

    binding = link.condition.binding
    try:
        if isinstance(binding, PathBinding):
            values = extract(binding, row)
        else:
            values = [_column(row, binding.column)]
    except BindError as e:
        logger.warning(f"⚠️  Hiding link {link.source_entity}.{link.name}: {e}")
        return False

    return len(values) == 1 and format_value(values[0]) == link.condition.equals


def visible_links(config: ConfigModel, entity_id: str, row: Row) -> list:
    """Links of the entity that apply to the row, sorted by name."""
    links = config.entity(entity_id).links
    return [links[name] for name in sorted(links) if condition_holds(links[name], row)]


def search_title(config: ConfigModel, search: Search, values: Sequence[Value]) -> str:
    entity = config.entity(search.entity_id)
    args = ", ".join(f"{param.name}={format_value(value)}" for param, value in zip(search.params, values))
    return f"{entity.name} / {search.name} ({args})"


def link_title(config: ConfigModel, link: Link, row: Row) -> str:
    items = []
    for binding in link.bindings:
        value = row.get(binding.column)
        shown = format_value(value) if value is not None else "<missing>"
        if isinstance(binding, PathBinding):
            items.append(f"{binding.path}={shown}")
        else:
            items.append(f"{binding.column}={shown}")
    source = config.entity(link.source_entity)
    return f"{source.name} ({', '.join(items)}) → {link.name}"


async def run_search(executor: SearchExecutor, search: Search, values: Sequence[Value]) -> list:
    logger.debug(f"Running {search.entity_id}.{search.name} with {[format_value(v) for v in values]}")
    return await executor.execute_search(search.query, list(values), search.param_types)


async def follow_link(
    config: ConfigModel,
    executor: SearchExecutor,
    entity_id: str,
    link_name: str,
    row: Row,
) -> SearchResult:
    """
    Resolve a link from the selected row and run the target search.

    Raises BindError or CoercionError when the parameters can't be bound,
    and ExecutionError when the database rejects the query.
    """
    link = config.link(entity_id, link_name)
    target = config.link_target(link)
    values = resolve(config, link, row)
    rows = await run_search(executor, target, values)
    return SearchResult(
        entity_id=link.target_entity,
        title=link_title(config, link, row),
        search=target,
        values=tuple(values),
        rows=tuple(rows),
    )
