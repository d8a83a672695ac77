import math
from typing import Tuple

from webpilot.exceptions import ActionValidationError


def _split_pair(value: str) -> Tuple[str, str]:
    parts = value.split(",") if isinstance(value, str) else []
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        raise ValueError(value)
    return parts[0].strip(), parts[1].strip()


def parse_coordinate(coordinate: str, action: str = "click") -> Tuple[float, float]:
    """
    Parse an "x,y" coordinate string.

    Raises:
        ActionValidationError: On a missing, non-numeric or non-finite component.
    """
    try:
        raw_x, raw_y = _split_pair(coordinate)
        x, y = float(raw_x), float(raw_y)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(coordinate)
    except ValueError:
        raise ActionValidationError(
            f'Invalid coordinates: {coordinate}. Expected format: "x,y"',
            action=action,
            invalid_params={"coordinate": coordinate},
            expected_format="x,y",
        ) from None
    return x, y


def parse_size(size: str) -> Tuple[int, int]:
    """
    Parse a "width,height" string into positive integers.

    Raises:
        ActionValidationError: On malformed input. Values are never rounded or clamped.
    """
    try:
        raw_width, raw_height = _split_pair(size)
        width, height = int(raw_width), int(raw_height)
        if width <= 0 or height <= 0:
            raise ValueError(size)
    except ValueError:
        raise ActionValidationError(
            f'Invalid size: {size}. Expected format: "width,height"',
            action="resize",
            invalid_params={"size": size},
            expected_format="width,height",
        ) from None
    return width, height
