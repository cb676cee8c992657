from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from projectcamp.core.errors import ConflictError, InternalError
from projectcamp.db import session


def test_get_db_yields_session_and_closes(monkeypatch):
    closed = False

    class DummySession:
        def close(self):
            nonlocal closed
            closed = True

    monkeypatch.setattr(session, "SessionLocal", lambda: DummySession())

    generator = session.get_db()
    produced_session = next(generator)
    assert isinstance(produced_session, DummySession)

    with pytest.raises(StopIteration):
        next(generator)

    assert closed, "Session should be closed after generator exits"


def test_verify_connection_executes_health_query(monkeypatch):
    executed = SimpleNamespace(value=False)

    class DummyConnection:
        def execute(self, statement):
            executed.value = True
            assert "SELECT 1" in str(statement)

    class DummyConnectionManager:
        def __enter__(self):
            return DummyConnection()

        def __exit__(self, *exc):
            return False

    class DummyEngine:
        def connect(self):
            return DummyConnectionManager()

    monkeypatch.setattr(session, "engine", DummyEngine())

    session.verify_connection()
    assert executed.value


def test_verify_connection_propagates_sqlalchemy_errors(monkeypatch):
    class DummyEngine:
        def connect(self):
            raise SQLAlchemyError("boom")

    monkeypatch.setattr(session, "engine", DummyEngine())
    monkeypatch.setattr(session.time, "sleep", lambda _seconds: None)

    with pytest.raises(SQLAlchemyError):
        session.verify_connection(max_attempts=2)


class _FailingSession:
    def __init__(self, exc):
        self.exc = exc
        self.rolled_back = False

    def commit(self):
        raise self.exc

    def rollback(self):
        self.rolled_back = True


def test_commit_session_maps_expected_integrity_error_to_conflict():
    db = _FailingSession(IntegrityError("INSERT", {}, Exception("duplicate key")))

    with pytest.raises(ConflictError) as excinfo:
        session.commit_session(db, conflict_message="Already taken.")

    assert excinfo.value.message == "Already taken."
    assert db.rolled_back


def test_commit_session_hides_store_errors():
    db = _FailingSession(OperationalError("UPDATE", {}, Exception("connection reset by peer")))

    with pytest.raises(InternalError) as excinfo:
        session.commit_session(db)

    assert "connection reset" not in excinfo.value.message
    assert excinfo.value.status_code == 500
    assert db.rolled_back


def test_commit_session_treats_unexpected_integrity_error_as_internal():
    db = _FailingSession(IntegrityError("INSERT", {}, Exception("fk violation")))

    with pytest.raises(InternalError):
        session.commit_session(db)
