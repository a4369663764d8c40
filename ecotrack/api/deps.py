from typing import Optional

from fastapi import Header, Query

from ecotrack.core.errors import ValidationError


def get_owner_id(
    owner_id: Optional[str] = Query(None, min_length=1, max_length=100),
    x_user_id: Optional[str] = Header(None, description="Caller identity when not passed as a query parameter"),
) -> str:
    """
    Resolve the opaque caller identity for read routes.

    The ``owner_id`` query parameter wins over the ``X-User-Id`` header.
    """
    resolved = owner_id or (x_user_id.strip() if x_user_id else None)
    if not resolved:
        raise ValidationError("owner_id is required (query parameter or X-User-Id header)")
    return resolved
