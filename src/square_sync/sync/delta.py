"""Parsing and validation of inbound movement updates."""

import math
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..utils.errors import MalformedDeltaError


class UpdateDelta(BaseModel):
    """A single movement instruction: offsets added to the square's position."""

    # ints stay ints so integer positions go out as integers
    x_update: Union[int, float] = Field(alias="xUpdate")
    y_update: Union[int, float] = Field(alias="yUpdate")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator('x_update', 'y_update', mode='before')
    @classmethod
    def require_number(cls, v):
        """Only finite real numbers; strings, bools and None are rejected."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("must be a number")
        try:
            finite = math.isfinite(float(v))
        except OverflowError:
            finite = False
        if not finite:
            raise ValueError("must be finite")
        return v


def parse_delta(payload: Any) -> UpdateDelta:
    """
    Parse a ``movementUpdate`` payload.

    Args:
        payload: Decoded message body, expected ``{"xUpdate": n, "yUpdate": n}``

    Returns:
        Validated delta

    Raises:
        MalformedDeltaError: If the payload is not a valid delta
    """
    if not isinstance(payload, dict):
        raise MalformedDeltaError(
            "payload", payload, "must be an object with xUpdate and yUpdate"
        )

    try:
        return UpdateDelta.model_validate(payload)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(x) for x in error["loc"]) or "payload"
        raise MalformedDeltaError(
            field, payload.get(field), error["msg"], cause=e
        ) from e
