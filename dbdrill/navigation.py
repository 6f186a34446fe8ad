"""
Navigation state machine

Owns the stack of views and turns key events into transitions. Only the
top view is interactive. Views are immutable; a state change replaces the
top of the stack with an updated copy.

Keys are Textual key names ("up", "enter", "escape", "ctrl+q", ...) or
single printable characters.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from .errors import BindError, CoercionError, ExecutionError
from .mnemonics import assign_mnemonics, mnemonic_index
from .registry import ConfigModel, Search
from .resolver import SearchExecutor, follow_link, run_search, search_title, visible_links
from .values import Row, parse_input

logger = logging.getLogger(__name__)

QUIT_KEYS = frozenset({"ctrl+q", "ctrl+c"})
QUIT_CHAR = "q"
LINK_KEY = "l"
REFRESH_KEY = "r"
MOVEMENT_KEYS = frozenset({"up", "down", "pageup", "pagedown", "home", "end"})
PAGE_SIZE = 10


class KeyResult(str, Enum):
    HANDLED = "handled"
    IGNORED = "ignored"
    QUIT = "quit"


# =============================================================================
# Views
# =============================================================================

@dataclass(frozen=True)
class EntityPicker:
    cursor: int = 0


@dataclass(frozen=True)
class SearchPicker:
    entity_id: str
    cursor: int = 0


@dataclass(frozen=True)
class ParamEntry:
    """Raw text per parameter; focus is the parameter being edited."""
    entity_id: str
    search_name: str
    inputs: tuple
    focus: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class ResultList:
    entity_id: str
    title: str
    search: Search
    values: tuple
    rows: tuple
    cursor: int = 0


@dataclass(frozen=True)
class LinkPicker:
    entity_id: str
    row: Row
    links: tuple
    cursor: int = 0


@dataclass(frozen=True)
class DetailPopup:
    title: str
    row: Row
    cursor: int = 0


View = Union[EntityPicker, SearchPicker, ParamEntry, ResultList, LinkPicker, DetailPopup]
PICKERS = (EntityPicker, SearchPicker, LinkPicker)


def _clamp(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(index, count - 1))


class Navigator:
    """
    Interactive navigation over a loaded configuration.

    Usage:
        navigator = Navigator(config, db)
        result = await navigator.handle_key("enter")

    Failures while pushing a view (bind, coercion or execution errors)
    leave the stack untouched and are reported through `message`.
    While a query is running every key is discarded.
    """

    def __init__(self, config: ConfigModel, executor: SearchExecutor, mnemonic_strategy: str = "greedy"):
        self.config = config
        self.executor = executor
        self.mnemonic_strategy = mnemonic_strategy
        self.message: Optional[str] = None
        self._stack: list = [EntityPicker()]
        self._busy = False

    # -------------------------------------------------------------------------
    # Stack
    # -------------------------------------------------------------------------

    @property
    def stack(self) -> tuple:
        return tuple(self._stack)

    @property
    def top(self) -> View:
        return self._stack[-1]

    @property
    def busy(self) -> bool:
        return self._busy

    def push(self, view: View):
        logger.debug(f"push {type(view).__name__}")
        self._stack.append(view)

    def pop(self):
        """Discard the top view; the root view is never popped."""
        if len(self._stack) > 1:
            view = self._stack.pop()
            logger.debug(f"pop {type(view).__name__}")

    def _replace_top(self, view: View):
        self._stack[-1] = view

    # -------------------------------------------------------------------------
    # What the current view shows
    # -------------------------------------------------------------------------

    def choices(self, view: Optional[View] = None) -> list:
        """Identifiers behind each picker entry, in display order."""
        view = self.top if view is None else view
        if isinstance(view, EntityPicker):
            return [entity.id for entity in self.config.sorted_entities()]
        if isinstance(view, SearchPicker):
            return sorted(self.config.entity(view.entity_id).searches)
        if isinstance(view, LinkPicker):
            return list(view.links)
        return []

    def labels(self, view: Optional[View] = None) -> list:
        view = self.top if view is None else view
        if isinstance(view, EntityPicker):
            return [entity.name for entity in self.config.sorted_entities()]
        if isinstance(view, PICKERS):
            return self.choices(view)
        if isinstance(view, ParamEntry):
            return [param.name for param in self.config.search(view.entity_id, view.search_name).params]
        if isinstance(view, DetailPopup):
            return list(view.row.columns)
        return []

    def reserved_keys(self, view: Optional[View] = None) -> set:
        view = self.top if view is None else view
        if isinstance(view, ResultList):
            return {QUIT_CHAR, LINK_KEY, REFRESH_KEY}
        if isinstance(view, ParamEntry):
            return set()
        return {QUIT_CHAR}

    def mnemonics(self, view: Optional[View] = None) -> list:
        """Fresh mnemonic assignment for the labels of a picker."""
        view = self.top if view is None else view
        labels = self.labels(view)
        if not isinstance(view, PICKERS):
            return [None] * len(labels)
        return assign_mnemonics(labels, self.reserved_keys(view), self.mnemonic_strategy)

    def item_count(self, view: Optional[View] = None) -> int:
        view = self.top if view is None else view
        if isinstance(view, ResultList):
            return len(view.rows)
        if isinstance(view, ParamEntry):
            return len(view.inputs)
        return len(self.labels(view))

    # -------------------------------------------------------------------------
    # Key handling
    # -------------------------------------------------------------------------

    async def handle_key(self, key: str) -> KeyResult:
        if self._busy:
            logger.debug(f"Discarding key {key!r} while a query is running")
            return KeyResult.IGNORED

        self.message = None
        if key in QUIT_KEYS:
            return KeyResult.QUIT

        view = self.top
        if key == "escape":
            self.pop()
            return KeyResult.HANDLED

        if isinstance(view, ParamEntry):
            return await self._param_key(view, key)

        if key == QUIT_CHAR:
            return KeyResult.QUIT

        if key in MOVEMENT_KEYS:
            self._move(view, key)
            return KeyResult.HANDLED

        if isinstance(view, PICKERS):
            return await self._picker_key(view, key)
        if isinstance(view, ResultList):
            return await self._result_key(view, key)
        if isinstance(view, DetailPopup) and key == "enter":
            self.pop()
            return KeyResult.HANDLED
        return KeyResult.IGNORED

    def _moved_index(self, current: int, key: str, count: int) -> int:
        if key == "up":
            return _clamp(current - 1, count)
        if key == "down":
            return _clamp(current + 1, count)
        if key == "pageup":
            return _clamp(current - PAGE_SIZE, count)
        if key == "pagedown":
            return _clamp(current + PAGE_SIZE, count)
        if key == "home":
            return 0
        return _clamp(count - 1, count)

    def _move(self, view: View, key: str):
        count = self.item_count(view)
        if isinstance(view, ParamEntry):
            self._replace_top(replace(view, focus=self._moved_index(view.focus, key, count)))
        else:
            self._replace_top(replace(view, cursor=self._moved_index(view.cursor, key, count)))

    async def _run(self, awaitable):
        """Await a query; no key is processed until it completes."""
        self._busy = True
        try:
            return await awaitable
        finally:
            self._busy = False

    # -------------------------------------------------------------------------
    # Pickers
    # -------------------------------------------------------------------------

    async def _picker_key(self, view: View, key: str) -> KeyResult:
        count = self.item_count(view)
        if key == "enter":
            index = view.cursor
        elif len(key) == 1:
            index = mnemonic_index(self.mnemonics(view)).get(key.lower())
        else:
            return KeyResult.IGNORED

        if index is None or index >= count:
            return KeyResult.IGNORED

        view = replace(view, cursor=index)
        self._replace_top(view)
        choice = self.choices(view)[index]

        if isinstance(view, EntityPicker):
            self.push(SearchPicker(choice))
        elif isinstance(view, SearchPicker):
            await self._open_search(self.config.search(view.entity_id, choice))
        else:
            await self._open_link(view, choice)
        return KeyResult.HANDLED

    async def _open_search(self, search: Search):
        if search.params:
            self.push(ParamEntry(search.entity_id, search.name, ("",) * len(search.params)))
            return

        try:
            rows = await self._run(run_search(self.executor, search, []))
        except ExecutionError as e:
            self._report("Error running query", e)
            return
        self.push(ResultList(search.entity_id, search_title(self.config, search, []), search, (), tuple(rows)))

    async def _open_link(self, view: LinkPicker, link_name: str):
        try:
            result = await self._run(follow_link(self.config, self.executor, view.entity_id, link_name, view.row))
        except (BindError, CoercionError, ExecutionError) as e:
            self._report("Error running link query", e)
            return
        # the link picker is an overlay: the new results take its place
        self._replace_top(ResultList(result.entity_id, result.title, result.search, result.values, result.rows))

    # -------------------------------------------------------------------------
    # Parameter entry
    # -------------------------------------------------------------------------

    async def _param_key(self, view: ParamEntry, key: str) -> KeyResult:
        if key in MOVEMENT_KEYS:
            self._move(view, key)
            return KeyResult.HANDLED

        if key == "backspace":
            self._edit(view, view.inputs[view.focus][:-1])
            return KeyResult.HANDLED

        if key == "enter":
            if view.focus < len(view.inputs) - 1:
                self._replace_top(replace(view, focus=view.focus + 1))
                return KeyResult.HANDLED
            await self._submit(view)
            return KeyResult.HANDLED

        if len(key) == 1 and key.isprintable():
            self._edit(view, view.inputs[view.focus] + key)
            return KeyResult.HANDLED

        return KeyResult.IGNORED

    def _edit(self, view: ParamEntry, text: str):
        inputs = list(view.inputs)
        inputs[view.focus] = text
        self._replace_top(replace(view, inputs=tuple(inputs), error=None))

    async def _submit(self, view: ParamEntry):
        search = self.config.search(view.entity_id, view.search_name)
        values = []
        for index, (param, raw) in enumerate(zip(search.params, view.inputs)):
            try:
                values.append(parse_input(raw, param.type))
            except CoercionError as e:
                self._replace_top(replace(view, focus=index, error=f"{param.name}: {e}"))
                return

        try:
            rows = await self._run(run_search(self.executor, search, values))
        except ExecutionError as e:
            self._report("Error running query", e)
            return

        # parameter entry is transient: the results replace it
        title = search_title(self.config, search, values)
        self._replace_top(ResultList(search.entity_id, title, search, tuple(values), tuple(rows)))

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    async def _result_key(self, view: ResultList, key: str) -> KeyResult:
        if key == REFRESH_KEY:
            await self._refresh(view)
            return KeyResult.HANDLED

        if key not in ("enter", LINK_KEY):
            return KeyResult.IGNORED

        if not view.rows:
            self.message = "No row selected"
            return KeyResult.HANDLED

        row = view.rows[view.cursor]
        if key == "enter":
            self.push(DetailPopup(f"{view.title} #{view.cursor}", row))
            return KeyResult.HANDLED

        links = visible_links(self.config, view.entity_id, row)
        if not links:
            self.message = f"{self.config.entity(view.entity_id).name} has no links for this row"
            return KeyResult.HANDLED
        self.push(LinkPicker(view.entity_id, row, tuple(link.name for link in links)))
        return KeyResult.HANDLED

    async def _refresh(self, view: ResultList):
        try:
            rows = await self._run(run_search(self.executor, view.search, view.values))
        except ExecutionError as e:
            self._report("Error running query", e)
            return
        self._replace_top(replace(view, rows=tuple(rows), cursor=_clamp(view.cursor, len(rows))))

    def _report(self, prefix: str, error: Exception):
        logger.warning(f"{prefix}: {error}")
        self.message = f"{prefix}: {error}"
