# storefront/services/unit_of_work.py
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.domain.errors import DomainError, Result, StoreUnavailable
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def run_in_transaction(db: Session, action: Callable[[], T], label: str) -> Result[T]:
    """Run `action` and commit, or roll everything back.

    Domain errors and database failures come back as a failed Result after
    the rollback; any other exception propagates (after the rollback).
    """
    try:
        value = action()
        db.commit()
    except DomainError as e:
        db.rollback()
        logger.info(f"{label} rejected: {e.code.value} {e.message}")
        return Result.failure(e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{label} rolled back: {e}")
        return Result.failure(StoreUnavailable())
    except Exception:
        db.rollback()
        raise
    return Result.success(value)
