"""Response envelope decoding.

The envelope class says how it is shaped through its ``envelope_kind``
class attribute, so decoding is a plain dispatch on that tag:

    BARE  whole document validated onto the class
    DATA  object body; "data" key becomes the payload, known side fields kept
    PAGE  whole document validated (data list + limit/page/total)
"""

from __future__ import annotations

import json
from typing import TypeVar

from pydantic import ValidationError

from weebdex.errors import ResponseDecodeError
from weebdex.models import EnvelopeKind, WeebDexResponse

E = TypeVar("E", bound=WeebDexResponse)


def decode_envelope(body: str | None, response_type: type[E]) -> E:
    """Decode a raw JSON body into an envelope of response_type.

    A blank body yields a default instance of response_type.

    Raises:
        ResponseDecodeError: If the body is not valid JSON or does not fit the
            envelope shape.
    """
    if body is None or not body.strip():
        return response_type()

    try:
        raw = json.loads(body)
    except json.JSONDecodeError as e:
        raise ResponseDecodeError(f"Response body is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        if response_type.envelope_kind == EnvelopeKind.BARE:
            expected = "a JSON object"
        else:
            expected = "a JSON object with a 'data' key"
        raise ResponseDecodeError(
            f"Expected {expected} for {response_type.__name__}, got {type(raw).__name__}"
        )

    try:
        return response_type.model_validate(raw)
    except ValidationError as e:
        raise ResponseDecodeError(
            f"Response does not match {response_type.__name__}: {e}"
        ) from e
