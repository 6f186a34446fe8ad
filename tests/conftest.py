"""
Pytest configuration and shared fixtures for dbdrill tests

APPROACH: run the navigator against an in-memory stand-in for the sample
database (docs/sample-db.sql) that answers the searches declared in
docs/sample-resources.toml. Tests that need a real PostgreSQL server live
in test_database_integration.py.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dbdrill.config import read_resources_document
from dbdrill.errors import ExecutionError
from dbdrill.registry import load
from dbdrill.values import Integer, Json, Row, Text

DOCS_DIR = project_root / "docs"
SAMPLE_RESOURCES = DOCS_DIR / "sample-resources.toml"
SAMPLE_SCHEMA = DOCS_DIR / "sample-db.sql"


# =============================================================================
# Sample data (same rows as docs/sample-db.sql)
# =============================================================================

USERS = [
    (1, "alice.johnson@example.com", "Alice Johnson"),
    (2, "bob.smith@example.com", "Bob Smith"),
    (3, "charlie.brown@example.com", "Charlie Brown"),
    (4, "diana.miller@example.com", "Diana Miller"),
    (5, "edward.wilson@example.com", "Edward Wilson"),
    (6, "fiona.garcia@example.com", "Fiona Garcia"),
    (7, "george.taylor@example.com", "George Taylor"),
    (8, "hannah.lee@example.com", "Hannah Lee"),
    (9, "ian.clark@example.com", "Ian Clark"),
    (10, "julia.martinez@example.com", "Julia Martinez"),
]

BLOGS = [
    (1, "Charlie's blog", "public", [{"postId": 1}, {"postId": 2}]),
    (2, "Example Inc. blog", "public", [{"postId": 3}, {"postId": 4}]),
    (3, "The blog of Alice", "private", []),
]

USER_BLOGS = [(3, 1, "editor"), (3, 2, "editor"), (3, 3, "reader"), (1, 3, "editor")]

POSTS = [
    (1, "Charlie's first post"),
    (2, "I went on holiday"),
    (3, "Presenting our new product"),
    (4, "Introducing the team"),
]


def user_row(user) -> Row:
    user_id, email, name = user
    return Row([("id", Integer(user_id)), ("email", Text(email)), ("name", Text(name))])


def blog_row(blog) -> Row:
    blog_id, name, visibility, posts = blog
    return Row([
        ("id", Integer(blog_id)),
        ("name", Text(name)),
        ("visibility", Text(visibility)),
        ("posts", Json(posts)),
    ])


def post_row(post) -> Row:
    post_id, content = post
    return Row([("id", Integer(post_id)), ("content", Text(content))])


def _contains(needle: str, haystack: str) -> bool:
    return needle.lower() in haystack.lower()


def _editors(blog_id: int) -> list:
    return [user_id for user_id, b, role in USER_BLOGS if b == blog_id and role == "editor"]


def _edited_by(user_id: int) -> list:
    return [blog_id for u, blog_id, role in USER_BLOGS if u == user_id and role == "editor"]


SEARCHES = {
    ("user", "id"): lambda id_: [user_row(u) for u in USERS if u[0] == id_],
    ("user", "email"): lambda text: [user_row(u) for u in USERS if _contains(text, u[1])],
    ("user", "all"): lambda: [user_row(u) for u in USERS],
    ("user", "by_blog"): lambda blog_id: [user_row(u) for u in USERS if u[0] in _editors(blog_id)],
    ("blog", "id"): lambda id_: [blog_row(b) for b in BLOGS if b[0] == id_],
    ("blog", "name"): lambda text: [blog_row(b) for b in BLOGS if _contains(text, b[1])],
    ("blog", "by_editor"): lambda user_id: [blog_row(b) for b in BLOGS if b[0] in _edited_by(user_id)],
    ("post", "id"): lambda id_: [post_row(p) for p in POSTS if p[0] == id_],
    ("post", "by_ids"): lambda ids: [post_row(p) for id_ in ids for p in POSTS if p[0] == id_],
    ("post", "content"): lambda text: [post_row(p) for p in POSTS if _contains(text, p[1])],
}


class FakeDatabase:
    """
    In-memory executor for the sample searches.

    Converts values to driver arguments exactly like DatabaseConnection,
    records every call and can be told to fail or to block until released.
    """

    def __init__(self, config):
        self.handlers = {
            config.search(entity_id, name).query: handler
            for (entity_id, name), handler in SEARCHES.items()
        }
        self.calls = []
        self.fail_with: Optional[str] = None
        self.gate: Optional[asyncio.Event] = None

    async def execute_search(self, query, values, param_types):
        args = [param_type.to_driver(value) for param_type, value in zip(param_types, values)]
        self.calls.append((query, args))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise ExecutionError(self.fail_with)
        handler = self.handlers.get(query)
        if handler is None:
            raise ExecutionError(f"unexpected query: {query}")
        return handler(*args)


@pytest.fixture
def sample_document():
    """Decoded docs/sample-resources.toml"""
    return read_resources_document(SAMPLE_RESOURCES)


@pytest.fixture
def sample_config(sample_document):
    return load(sample_document)


@pytest.fixture
def fake_db(sample_config):
    return FakeDatabase(sample_config)
