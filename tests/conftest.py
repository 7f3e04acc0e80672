"""Shared test doubles."""

from types import SimpleNamespace

import pytest


class FakeQuery:
    """Stands in for a supabase query builder and records every call made on it."""

    def __init__(self, table, pages):
        self.table = table
        self.calls = []
        self._pages = pages

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return record

    def args_of(self, name):
        return [args for call, args, _ in self.calls if call == name]

    async def execute(self):
        return SimpleNamespace(data=self._pages.pop(0) if self._pages else [])


class FakeDb:
    """Answers ``table(name)`` queries from canned pages of rows, in order."""

    def __init__(self, **pages):
        self._pages = {table: list(value) for table, value in pages.items()}
        self.queries = []

    def table(self, name):
        query = FakeQuery(name, self._pages.setdefault(name, []))
        self.queries.append(query)
        return query


@pytest.fixture
def fake_db():
    return FakeDb
