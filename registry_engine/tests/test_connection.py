"""
Session lifecycle tests for database.connection.
"""

import pytest

from database import connection
from database.connection import dispose_db, get_session_context, init_db, is_initialized
from database.models import Factor


def test_session_context_commits(db):
    with get_session_context() as session:
        session.add(Factor(id=7, order=1, name="Sucho"))

    with get_session_context() as session:
        assert session.get(Factor, 7).name == "Sucho"


def test_session_context_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with get_session_context() as session:
            session.add(Factor(id=8, order=1, name="Víchrica"))
            session.flush()
            raise RuntimeError("boom")

    with get_session_context() as session:
        assert session.get(Factor, 8) is None


def test_init_and_dispose():
    init_db("sqlite://")
    assert is_initialized()
    dispose_db()
    assert not is_initialized()
    assert not hasattr(connection, "get_db"), "sessions come only from get_session_context"
