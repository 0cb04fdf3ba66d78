from math import ceil
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder


def success(
    data: Optional[Any] = None,
    message: str = "Success",
    meta: Optional[Dict] = None,
) -> dict:
    """Standard success envelope; error envelopes are built by the app's exception handlers."""
    body = {
        "success": True,
        "message": message,
        "data": data,
        "errors": None,
    }
    if meta is not None:
        body["meta"] = meta

    # Orders carry enums and datetimes
    return jsonable_encoder(body)


def paginated_response(
    items: List[Any],
    total: int,
    page: int,
    limit: int,
    message: str = "Success",
) -> dict:
    total_pages = ceil(total / limit) if limit else 0
    return success(
        data=items,
        message=message,
        meta={
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_next": page < total_pages,
        },
    )
