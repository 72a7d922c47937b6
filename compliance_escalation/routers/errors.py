"""Mapping of escalation engine errors onto HTTP responses."""

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException, status

from compliance_escalation.core.escalation.errors import (
    ChainValidationError,
    NotFoundError,
    PreconditionViolation,
)


@contextmanager
def http_errors() -> Iterator[None]:
    """Translate engine errors raised inside the block.

    NotFoundError -> 404, PreconditionViolation -> 409,
    ChainValidationError -> 422 with every problem listed.
    """
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except PreconditionViolation as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    except ChainValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid escalation chain", "problems": e.problems},
        ) from e
