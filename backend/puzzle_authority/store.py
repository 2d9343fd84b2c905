"""
Keyed transactional storage.

Services never talk to a particular database directly for contended state.
They receive a repository exposing two operations:

- get(key): read the current row for a key, or None
- run_transaction(key, fn): optimistic read-modify-write of that row

Every attempt of run_transaction runs in a fresh session. Rows carry a
version column, so a concurrent commit between our read and our write makes
the UPDATE match no rows (StaleDataError); two concurrent creates of the same
key collide on the primary key (IntegrityError). Either way the attempt is
rolled back and fn is called again with freshly read state.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from puzzle_authority.errors import StorageConflictError

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


class Transaction:
    """Handle passed to a transaction function for one attempt."""

    def __init__(self, session: Session, model: Any, key: Any, current: Any) -> None:
        self.session = session
        self.model = model
        self.key = key
        self.current = current
        self.attempt = 1

    def create(self, **fields: Any) -> Any:
        """Add a new row for this transaction's key."""
        row = self.model(**fields)
        self.session.add(row)
        self.current = row
        return row

    def delete(self) -> None:
        if self.current is not None:
            self.session.delete(self.current)
            self.current = None


class RepositoryProtocol(Protocol):
    """What the services need from keyed storage."""

    def get(self, key: Any) -> Optional[Any]: ...

    def run_transaction(self, key: Any, fn: Callable[[Transaction], T]) -> T: ...


class KeyedRepository:
    """SQLAlchemy implementation of RepositoryProtocol for one model."""

    def __init__(self, store: "TransactionalStore", model: Any) -> None:
        self._store = store
        self.model = model

    def get(self, key: Any) -> Optional[Any]:
        with self._store.session_scope() as session:
            return session.get(self.model, key)

    def run_transaction(self, key: Any, fn: Callable[[Transaction], T]) -> T:
        """Run fn against the row for key until it commits without conflict.

        Raises:
            StorageConflictError: every attempt conflicted.
        """
        max_attempts = self._store.max_attempts
        for attempt in range(1, max_attempts + 1):
            session = self._store.new_session()
            try:
                tx = Transaction(session, self.model, key, session.get(self.model, key))
                tx.attempt = attempt
                result = fn(tx)
                session.commit()
                return result
            except (StaleDataError, IntegrityError) as exc:
                session.rollback()
                current_app.logger.info(
                    f"[store] conflict on {self.model.__tablename__}:{key} attempt={attempt}/{max_attempts}: {type(exc).__name__}"
                )
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()
        current_app.logger.warning(
            f"[store] giving up on {self.model.__tablename__}:{key} after {max_attempts} attempts"
        )
        raise StorageConflictError(key, max_attempts)


class TransactionalStore:
    """Flask extension owning the session factory used for transactions.

    Usage:
        store = TransactionalStore()
        store.init_app(app)
        with app.app_context():
            store.open(db.engine)

        profiles = store.repository(PlayerProfile)
        profiles.run_transaction(uid, lambda tx: ...)
    """

    def __init__(self, app: Any = None) -> None:
        self._session_factory: Optional[sessionmaker] = None
        self._repositories: Dict[Any, KeyedRepository] = {}
        self.max_attempts = DEFAULT_MAX_ATTEMPTS
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Any) -> None:
        self.max_attempts = int(app.config.get("TRANSACTION_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))
        app.extensions["transactional_store"] = self

    def open(self, engine: Any) -> None:
        """Bind the store to an engine. Sessions share the engine's pool."""
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def close(self) -> None:
        self._session_factory = None
        self._repositories.clear()

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    def new_session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("TransactionalStore is not open. Call open(engine) first.")
        return self._session_factory()

    def repository(self, model: Any) -> KeyedRepository:
        repo = self._repositories.get(model)
        if repo is None:
            repo = KeyedRepository(self, model)
            self._repositories[model] = repo
        return repo

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Plain unit of work: commit on success, roll back on any exception."""
        session = self.new_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
