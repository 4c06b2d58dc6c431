from __future__ import annotations

import json

from ..core.exceptions import ValidationError

# Older displays encoded {"sessionId": "<token id>"} instead of the bare id.
_PAYLOAD_KEYS = ("tokenId", "token_id", "sessionId")


def extract_token_id(raw: str) -> str:
    """Return the token id carried by a decoded QR payload.

    The payload is either the bare token id or a JSON object holding it.
    """
    value = (raw or "").strip()
    if not value:
        raise ValidationError("QR payload is empty")

    if not value.startswith("{"):
        return value

    try:
        data = json.loads(value)
    except ValueError:
        raise ValidationError("QR payload is not valid JSON")

    if isinstance(data, dict):
        for key in _PAYLOAD_KEYS:
            token_id = data.get(key)
            if isinstance(token_id, str) and token_id.strip():
                return token_id.strip()
    raise ValidationError("QR payload does not carry a token id")


def encode_token_payload(token_id: str) -> str:
    """What the session host display encodes in the QR symbol."""
    return token_id
