"""Queue payload encoding for orders."""

from __future__ import annotations

import pydantic

from .errors import DeserializationError
from .models import Order


def encode_order(order: Order) -> str:
    """Serialize an order to its queue wire form."""
    return order.to_json()


def decode_order(payload: str | bytes) -> Order:
    """Rebuild an order from queue wire bytes.

    Raises:
        DeserializationError: The payload is not valid JSON or does not
            describe a valid order.
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DeserializationError(f"Order payload is not UTF-8: {exc}") from exc
    try:
        return Order.model_validate_json(payload)
    except pydantic.ValidationError as exc:
        raise DeserializationError(
            f"Malformed order payload ({exc.error_count()} errors): "
            f"{exc.errors(include_url=False, include_input=False)}"
        ) from exc
