"""Test fixtures package."""

from .fake_connection import FakeConnection, FakeCursor, by_table, first_row

__all__ = [
    "FakeConnection",
    "FakeCursor",
    "by_table",
    "first_row",
]
