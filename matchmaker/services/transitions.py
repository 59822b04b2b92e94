from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from matchmaker.core.errors import ConflictError
from matchmaker.core.messages import Operation, render_message
from matchmaker.schemas.actions import ActionResult

logger = logging.getLogger(__name__)


def commit_transition(
    session: Session,
    operation: Operation,
    counterpart_name: str,
    apply: Callable[[], None],
) -> ActionResult:
    """Run ``apply`` and commit it as one unit, or roll everything back.

    Conflicts and persistence failures both come back as ``success=False``;
    nothing written by ``apply`` survives either of them.
    """
    try:
        apply()
        session.commit()
    except ConflictError as err:
        session.rollback()
        logger.info("%s rejected: %s", operation.value, err.reason)
        return _result(operation, False, counterpart_name)
    except IntegrityError as err:
        session.rollback()
        logger.info("%s rejected by constraint: %s", operation.value, err.orig)
        return _result(operation, False, counterpart_name)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("%s failed to persist", operation.value)
        return _result(operation, False, counterpart_name)

    return _result(operation, True, counterpart_name)


def _result(operation: Operation, success: bool, name: str) -> ActionResult:
    return ActionResult(
        success=success,
        message=render_message(operation, success, name),
    )
