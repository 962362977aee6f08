"""JSON message body encoding and decoding."""

import json
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from rabbitmq_session.core.exceptions import SerializationError

CONTENT_TYPE = "application/json"


@runtime_checkable
class JsonPayload(Protocol):
    """Payload that knows how to render itself as a JSON body."""

    def to_json_bytes(self) -> bytes: ...


def encode_payload(payload: Any) -> bytes:
    """
    Encode a payload as a UTF-8 JSON message body.

    Non-ASCII characters are written as-is rather than ``\\uXXXX`` escaped.

    Args:
        payload: JsonPayload, pydantic model, or any json-serializable value

    Returns:
        Encoded message body

    Raises:
        SerializationError: If the payload cannot be encoded
    """
    if isinstance(payload, JsonPayload):
        body = payload.to_json_bytes()
        if not isinstance(body, (bytes, bytearray)):
            raise SerializationError(
                f"{type(payload).__name__}.to_json_bytes() returned "
                f"{type(body).__name__}, expected bytes"
            )
        return bytes(body)

    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")

    try:
        # allow_nan=False keeps the output valid JSON for non-Python consumers
        return json.dumps(payload, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Payload is not JSON serializable: {e}") from e


def decode_body(body: bytes) -> Any:
    """Decode a delivered UTF-8 JSON message body."""
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SerializationError(f"Message body is not valid JSON: {e}") from e
