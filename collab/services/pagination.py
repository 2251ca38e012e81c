import math
from typing import Any, Dict

from collab.core.exceptions import ValidationError


def validate_window(take: int, skip: int) -> None:
    if take < 1:
        raise ValidationError("take must be at least 1", details={"take": take})
    if skip < 0:
        raise ValidationError("skip cannot be negative", details={"skip": skip})


def build_pagination(total: int, take: int, skip: int) -> Dict[str, Any]:
    """Page metadata shared by every paginated listing."""
    return {
        "total": total,
        "take": take,
        "skip": skip,
        "has_more": skip + take < total,
        "total_pages": math.ceil(total / take),
        "current_page": skip // take + 1,
    }
