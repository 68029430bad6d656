"""Error recorder - persists failures with message, stack and context."""
import json
import traceback
from typing import Any, Dict, Optional, Union

import structlog
from sqlalchemy.orm import Session

from emailflow.db.models.error_log import ErrorLog

logger = structlog.get_logger()


def _jsonable(payload: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if payload is None:
        return None
    return json.loads(json.dumps(payload, default=str))


def record_error(
    db: Session,
    context: str,
    error: Union[BaseException, str],
    payload: Optional[Dict[str, Any]] = None
) -> None:
    """Store an error log entry. Never raises."""
    if isinstance(error, BaseException):
        message = str(error) or error.__class__.__name__
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    else:
        message = error
        stack = None

    try:
        db.add(ErrorLog(
            context=context,
            error_message=message,
            stack_trace=stack,
            payload=_jsonable(payload)
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Failed to record error", context=context, original_error=message, error=str(e))
