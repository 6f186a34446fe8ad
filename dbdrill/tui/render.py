"""
Rich renderables for each navigator view.

Pure functions of the navigator state; the Textual app only decides where
to put them.
"""

import json
from typing import Optional

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..navigation import (
    DetailPopup,
    EntityPicker,
    LinkPicker,
    Navigator,
    ParamEntry,
    ResultList,
    SearchPicker,
    View,
)
from ..values import Json, Value, format_value

CELL_WIDTH = 32
MNEMONIC_STYLE = "bold underline"
CURSOR_STYLE = "reverse"
ERROR_STYLE = "bold red"

HINTS = {
    EntityPicker: "key/enter: open  ↑↓: move  q: quit",
    SearchPicker: "key/enter: run  ↑↓: move  esc: back  q: quit",
    ParamEntry: "type a value  enter: next/run  ↑↓: field  esc: back  ctrl+q: quit",
    ResultList: "enter: details  l: links  r: refresh  ↑↓ pgup/pgdn: move  esc: back  q: quit",
    LinkPicker: "key/enter: follow  ↑↓: move  esc: close",
    DetailPopup: "enter/esc: close  ↑↓: scroll",
}


def clip(text: str, width: int = CELL_WIDTH) -> str:
    """Single line, at most width characters."""
    text = " ".join(text.split())
    if len(text) <= width:
        return text
    return text[: width - 1] + "…"


def visible_window(count: int, cursor: int, height: int) -> tuple:
    """Start and end index of the rows to draw so the cursor stays visible."""
    if height <= 0 or count <= height:
        return 0, count
    start = max(0, min(cursor - height // 2, count - height))
    return start, start + height


def view_title(navigator: Navigator, view: View) -> str:
    config = navigator.config
    if isinstance(view, EntityPicker):
        return "Resources"
    if isinstance(view, SearchPicker):
        return config.entity(view.entity_id).name
    if isinstance(view, ParamEntry):
        return f"{config.entity(view.entity_id).name} / {view.search_name}"
    if isinstance(view, (ResultList, DetailPopup)):
        return view.title
    return "Links"


def breadcrumbs(navigator: Navigator) -> Text:
    return Text(" > ".join(view_title(navigator, view) for view in navigator.stack), style="bold")


def picker(labels: list, mnemonics: list, cursor: int) -> Text:
    """One label per line, mnemonic character highlighted, cursor reversed."""
    text = Text()
    for index, (label, mnemonic) in enumerate(zip(labels, mnemonics)):
        line = Text(f" {label} ")
        if mnemonic is not None:
            line.stylize(MNEMONIC_STYLE, mnemonic.position + 1, mnemonic.position + 2)
        if index == cursor:
            line.stylize(CURSOR_STYLE)
        if index:
            text.append("\n")
        text.append_text(line)
    if not labels:
        text.append("(nothing to choose from)", style="dim")
    return text


def param_form(navigator: Navigator, view: ParamEntry) -> RenderableType:
    search = navigator.config.search(view.entity_id, view.search_name)
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column(style="dim")
    table.add_column()
    for index, (param, raw) in enumerate(zip(search.params, view.inputs)):
        value = Text(raw)
        if index == view.focus:
            value.append("▏", style="blink")
            value.stylize("underline")
        table.add_row(param.name, param.type.name, value)

    if view.error:
        return Group(table, Text(view.error, style=ERROR_STYLE))
    return table


def result_table(view: ResultList, height: int) -> RenderableType:
    if not view.rows:
        return Text("No rows", style="dim")

    table = Table(show_edge=False, header_style="bold", pad_edge=False)
    table.add_column("#", justify="right", style="dim")
    for column in view.rows[0].columns:
        table.add_column(column, no_wrap=True, max_width=CELL_WIDTH)

    start, end = visible_window(len(view.rows), view.cursor, height)
    for index in range(start, end):
        row = view.rows[index]
        table.add_row(
            str(index),
            *(clip(format_value(value)) for value in row.values),
            style=CURSOR_STYLE if index == view.cursor else None,
        )
    return table


def _detail_value(value: Value) -> str:
    if isinstance(value, Json) and not value.is_leaf:
        return json.dumps(value.value, indent=2, ensure_ascii=False)
    return format_value(value)


def detail_table(view: DetailPopup, height: Optional[int] = None) -> RenderableType:
    table = Table(show_header=False, show_edge=False, box=None, padding=(0, 1))
    table.add_column(style="bold", no_wrap=True)
    table.add_column(overflow="fold")
    items = list(view.row.items())
    start = view.cursor if height is None else visible_window(len(items), view.cursor, height)[0]
    for name, value in items[start:]:
        table.add_row(name, _detail_value(value))
    return Panel(table, title=view.title, border_style="cyan")


def body(navigator: Navigator, height: int = 20) -> RenderableType:
    view = navigator.top
    if isinstance(view, (EntityPicker, SearchPicker)):
        return picker(navigator.labels(view), navigator.mnemonics(view), view.cursor)
    if isinstance(view, LinkPicker):
        links = picker(navigator.labels(view), navigator.mnemonics(view), view.cursor)
        return Panel(links, title=f"Links from {navigator.config.entity(view.entity_id).name}", border_style="cyan")
    if isinstance(view, ParamEntry):
        return param_form(navigator, view)
    if isinstance(view, ResultList):
        return result_table(view, height)
    return detail_table(view, height)


def status_line(navigator: Navigator) -> Text:
    if navigator.busy:
        return Text("Running query…", style="yellow")
    if navigator.message:
        return Text(navigator.message, style=ERROR_STYLE)
    view = navigator.top
    hint = HINTS.get(type(view), "")
    if isinstance(view, ResultList):
        hint = f"{view.cursor + 1 if view.rows else 0}/{len(view.rows)}  {hint}"
    return Text(hint, style="dim")
