from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from sqlalchemy.orm import Session

from app.core.exceptions import AppError
from app.schemas.bulk import BulkItemError, BulkOperationResult

logger = logging.getLogger(__name__)


def execute_bulk(db: Session, item_ids: Iterable[str], operation: Callable[[str], None]) -> BulkOperationResult:
    """Apply ``operation`` to each id inside its own savepoint.

    Items are independent: a failure rolls back only that item's savepoint and
    is recorded in the result. The caller owns the surrounding transaction.
    """
    result = BulkOperationResult()
    for item_id in dict.fromkeys(item_ids):
        try:
            with db.begin_nested():
                operation(item_id)
        except AppError as exc:
            result.failed.append(BulkItemError(id=item_id, message=exc.message, details=exc.details))
        except Exception as exc:
            logger.exception("Bulk operation failed for %s", item_id)
            result.failed.append(BulkItemError(id=item_id, message=str(exc) or exc.__class__.__name__))
        else:
            result.succeeded.append(item_id)
    return result
