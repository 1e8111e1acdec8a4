"""Engine lifecycle, session_scope and the SQLite transaction setup."""

import pytest
from sqlalchemy import select, text

from inventory_kernel.db.engine import (
    get_engine,
    get_session,
    reset_engine,
    session_scope,
)
from inventory_kernel.models.item import Item


def _item(sku):
    return Item(sku=sku, display_name=sku, item_type="product")


class TestSessionScope:
    def test_commits_on_success(self, engine, session_factory, captured_logs):
        with session_scope() as session:
            session.add(_item("SCOPE-1"))

        with session_factory() as check:
            assert check.scalars(select(Item.sku)).all() == ["SCOPE-1"]
        messages = [r["message"] for r in captured_logs()]
        assert "transaction_committed" in messages

    def test_rolls_back_and_reraises(self, engine, session_factory, captured_logs):
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as session:
                session.add(_item("SCOPE-2"))
                session.flush()
                raise RuntimeError("boom")

        with session_factory() as check:
            assert check.scalars(select(Item.sku)).all() == []
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())


class TestSqlite:
    def test_savepoint_rolls_back_inner_work_only(self, engine, session):
        if engine.dialect.name != "sqlite":
            pytest.skip("SQLite transaction setup")
        session.add(_item("OUTER"))
        session.flush()
        with pytest.raises(RuntimeError):
            with session.begin_nested():
                session.add(_item("INNER"))
                session.flush()
                raise RuntimeError("inner failure")

        assert session.scalars(select(Item.sku)).all() == ["OUTER"]

    def test_foreign_keys_enabled(self, engine):
        if engine.dialect.name != "sqlite":
            pytest.skip("SQLite transaction setup")
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


class TestUninitialized:
    def test_accessors_require_init(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()
