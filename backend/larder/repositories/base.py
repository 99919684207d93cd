from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from larder.core.errors import DependencyFailure, LarderError


class SqlRepository:
    """Shared plumbing for repositories bound to one unit-of-work session.

    Repositories only flush. Committing belongs to the service through ``transaction``.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise DependencyFailure(operation, exc) from exc


@contextmanager
def transaction(db: Session, operation: str) -> Iterator[None]:
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise DependencyFailure(operation, exc) from exc
    except Exception:
        db.rollback()
        raise


def unit_failure(db: Session, exc: Exception) -> str:
    """Discard whatever one batch unit left in the session and describe its failure."""
    db.rollback()
    if isinstance(exc, LarderError):
        return exc.detail
    return f"{type(exc).__name__}: {exc}"
