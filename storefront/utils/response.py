from fastapi.encoders import jsonable_encoder
from typing import Any, Optional, Dict
import math


def success(
    data: Optional[Any] = None,
    message: str = "Success",
    pagination: Optional[Dict] = None,
):
    response = {
        "success": True,
        "message": message,
        "data": data,
        "errors": None,
    }

    if pagination is not None:
        response["pagination"] = pagination

    # Ensure pydantic models, datetimes, Decimals, etc. are JSON-serializable.
    return jsonable_encoder(response)


def pagination_meta(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def paginated_response(
    key: str,
    items,
    total: int,
    page: int,
    limit: int,
    message: str = "Success",
):
    return success(
        data={key: items},
        message=message,
        pagination=pagination_meta(total, page, limit),
    )
