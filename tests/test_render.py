"""
Tests for the Rich renderables of each view
"""

import io

import pytest
from rich.console import Console

from dbdrill.mnemonics import Mnemonic
from dbdrill.navigation import Navigator, ResultList
from dbdrill.tui import render
from dbdrill.values import Json, Row


def to_text(renderable, width: int = 120) -> str:
    console = Console(width=width, file=io.StringIO(), record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


@pytest.fixture
def navigator(sample_config, fake_db):
    return Navigator(sample_config, fake_db)


class TestHelpers:

    def test_clip(self):
        assert render.clip("short") == "short"
        assert render.clip("x" * 40) == "x" * 31 + "…"
        assert render.clip("two\nlines") == "two lines"

    def test_visible_window(self):
        assert render.visible_window(5, 0, 10) == (0, 5)
        assert render.visible_window(100, 0, 10) == (0, 10)
        assert render.visible_window(100, 50, 10) == (45, 55)
        assert render.visible_window(100, 99, 10) == (90, 100)


class TestPicker:

    def test_mnemonic_highlighted(self):
        text = render.picker(["Blog", "Post"], [Mnemonic(0, "b"), Mnemonic(0, "p")], cursor=1)
        assert text.plain == " Blog \n Post "
        styles = {(span.start, span.end, str(span.style)) for span in text.spans}
        assert (1, 2, render.MNEMONIC_STYLE) in styles
        assert (8, 9, render.MNEMONIC_STYLE) in styles
        assert (7, 13, render.CURSOR_STYLE) in styles

    def test_label_without_mnemonic(self):
        text = render.picker(["a", "a"], [Mnemonic(0, "a"), None], cursor=0)
        assert text.plain == " a \n a "

    def test_empty(self):
        assert "nothing to choose" in render.picker([], [], 0).plain


class TestScreens:

    async def test_entity_picker(self, navigator):
        output = to_text(render.body(navigator))
        assert "Blog" in output and "User" in output
        assert render.breadcrumbs(navigator).plain == "Resources"

    async def test_param_form_error(self, navigator):
        for key in ("u", "i", "x", "enter"):
            await navigator.handle_key(key)
        output = to_text(render.body(navigator))
        assert "integer" in output
        assert "not a valid integer" in output
        assert render.breadcrumbs(navigator).plain == "Resources > User > User / id"

    async def test_result_table(self, navigator):
        for key in ("u", "a"):
            await navigator.handle_key(key)
        output = to_text(render.body(navigator, height=3))
        assert "email" in output
        assert "alice.johnson@example.com" in output
        assert "julia.martinez@example.com" not in output
        assert "1/10" in render.status_line(navigator).plain

    async def test_link_picker_panel(self, navigator):
        for key in ("u", "i", "3", "enter", "l"):
            await navigator.handle_key(key)
        output = to_text(render.body(navigator))
        assert "Links from User" in output
        assert "Blogs" in output

    def test_detail_pretty_prints_json(self):
        view = render.DetailPopup("Blog #0", Row([("posts", Json([{"postId": 1}]))]))
        output = to_text(render.detail_table(view))
        assert '"postId": 1' in output
        assert "Blog #0" in output

    def test_empty_result(self, sample_config):
        view = ResultList("user", "User / id (id=99)", sample_config.search("user", "id"), (), ())
        assert "No rows" in to_text(render.result_table(view, 10))


class TestStatusLine:

    async def test_message_shown(self, navigator):
        for key in ("p", "i", "1", "enter", "l"):
            await navigator.handle_key(key)
        status = render.status_line(navigator)
        assert status.plain == "Post has no links for this row"
        assert str(status.style) == render.ERROR_STYLE

    async def test_hint(self, navigator):
        assert "quit" in render.status_line(navigator).plain
