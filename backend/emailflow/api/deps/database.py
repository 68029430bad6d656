"""Request-scoped database session."""
from typing import Iterator
import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session
from emailflow.db.base import session_scope

logger = structlog.get_logger()


def get_db() -> Iterator[Session]:
    """Yield one session per request.

    Work left uncommitted by a failing handler is rolled back before the
    session is closed. HTTP errors are expected outcomes and are not logged.
    """
    with session_scope() as db:
        try:
            yield db
        except HTTPException:
            raise
        except Exception as e:
            logger.warning("Request failed with open session; rolling back", error=str(e))
            raise
