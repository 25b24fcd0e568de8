"""
Unit-of-work helpers shared by the mutation modules.

Translates SQLAlchemy failures into the domain error taxonomy and
implements the optimistic-concurrency and pagination conventions.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from .exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    StudentPerformanceError,
    UnexpectedError,
)

logger = logging.getLogger(__name__)


def get_or_404(db: Session, model, entity_id: int, label: str = None):
    """Load a row by primary key or raise NotFoundError."""
    row = db.get(model, entity_id)
    if row is None:
        raise NotFoundError(label or model.__name__, entity_id)
    return row


def check_version(row, version: Optional[int], label: str) -> None:
    """
    Compare the caller's version token with the row's current version.

    A None token means the caller did not read the row first and opts out
    of the check; the mapper-level version column still guards the write.
    """
    if version is not None and row.version != version:
        logger.warning(
            "%s %s version mismatch: caller has %s, row is at %s",
            label, row.id, version, row.version,
        )
        raise ConcurrencyConflictError(label, row.id)


def split_changes(
    changes: Dict[str, Any],
    mutable: Iterable[str],
    immutable: Iterable[str] = (),
    label: str = "entity",
) -> Dict[str, Any]:
    """
    Validate a partial-update payload.

    Only keys present in ``changes`` are applied. Keys naming immutable
    fields or unknown fields are rejected.
    """
    mutable = set(mutable)
    immutable = set(immutable)
    for key in changes:
        if key in immutable:
            raise InvalidArgumentError(f"{label} field '{key}' cannot be changed after creation", key)
        if key not in mutable:
            raise InvalidArgumentError(f"Unknown {label} field '{key}'", key)
    return dict(changes)


def _row_exists(db: Session, model, entity_id: int) -> bool:
    return db.query(model.id).filter(model.id == entity_id).first() is not None


def commit(db: Session, model=None, entity_id: int = None, label: str = None) -> None:
    """
    Commit the session's unit of work.

    Raises:
        NotFoundError: The row being updated or deleted vanished concurrently
        ConcurrencyConflictError: The row exists but another writer changed it
        ConflictError: A unique or foreign-key constraint rejected the write
        UnexpectedError: Any other Entity Store failure
    """
    label = label or (model.__name__ if model is not None else "entity")
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        if model is None or entity_id is None or not _row_exists(db, model, entity_id):
            logger.warning("%s %s no longer exists, lost the race with a delete", label, entity_id)
            raise NotFoundError(label, entity_id) from exc
        logger.warning("%s %s changed concurrently", label, entity_id)
        raise ConcurrencyConflictError(label, entity_id) from exc
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Constraint violation while writing %s %s: %s", label, entity_id, exc.orig)
        raise ConflictError(f"{label} write violates a uniqueness or reference constraint") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Entity Store failure while writing %s %s", label, entity_id)
        raise UnexpectedError(f"Unexpected storage error while writing {label}") from exc


def paginate(query: Query, page: int = 1, page_size: Optional[int] = None) -> Tuple[list, int]:
    """
    Apply pagination to an already scoped and filtered query.

    Returns:
        (items on the requested page, total matching rows)
    """
    if page_size is None:
        page_size = settings.default_page_size
    if page < 1:
        raise InvalidArgumentError("page must be 1 or greater", "page")
    if page_size < 1:
        raise InvalidArgumentError("page_size must be 1 or greater", "page_size")
    page_size = min(page_size, settings.max_page_size)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def page_result(items: list, total: int, page: int, page_size: Optional[int]) -> Dict[str, Any]:
    """Shape a paginated listing the way every list operation returns it."""
    if page_size is None:
        page_size = settings.default_page_size
    return {
        "total": total,
        "page": page,
        "page_size": min(page_size, settings.max_page_size),
        "items": [item.to_dict() for item in items],
    }


@contextmanager
def atomic(db: Session, label: str):
    """
    Run several flushes as one all-or-nothing step.

    Any failure inside the block rolls the whole session back, so rows
    flushed earlier in the block never outlive a later failure.
    """
    try:
        yield
    except StudentPerformanceError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Constraint violation while writing %s: %s", label, exc.orig)
        raise ConflictError(f"{label} write violates a uniqueness or reference constraint") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Entity Store failure while writing %s, rolled back", label)
        raise UnexpectedError(f"Unexpected storage error while writing {label}") from exc
