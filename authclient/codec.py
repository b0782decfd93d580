"""
Payload codec for request and response envelopes.

The transform is JSON followed by base64. It is a reversible obfuscation step,
not encryption: there is no key material and no integrity check.
"""

import base64
import binascii
import json
import logging
from typing import Any

from authshared.exceptions import DecodeError, ErrorCode

logger = logging.getLogger(__name__)


class EncryptionCodec:
    """Encodes JSON-serialisable values into transport-safe strings and back."""

    ENVELOPE_FIELD = "data"

    def encode(self, payload: Any) -> str:
        """
        Encode a JSON-serialisable value.

        Raises:
            DecodeError: with CODEC_ENCODE_FAILED when the value is not serialisable
        """
        try:
            serialized = json.dumps(payload, ensure_ascii=False, allow_nan=False, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            raise DecodeError(
                f"Payload is not JSON serialisable: {e}",
                error_code=ErrorCode.CODEC_ENCODE_FAILED,
                cause=e
            )
        return base64.b64encode(serialized.encode('utf-8')).decode('ascii')

    def decode(self, text: str) -> Any:
        """
        Decode a string produced by encode().

        Raises:
            DecodeError: On malformed base64, invalid UTF-8 or invalid JSON
        """
        if not isinstance(text, str):
            raise DecodeError(f"Expected encoded string, got {type(text).__name__}")

        try:
            raw = base64.b64decode(text.encode('ascii'), validate=True)
            return json.loads(raw.decode('utf-8'))
        except (binascii.Error, UnicodeError, ValueError) as e:
            logger.debug(f"Failed to decode payload of length {len(text)}: {e}")
            raise DecodeError(f"Malformed encoded payload: {e}", cause=e)

    def wrap(self, payload: Any) -> dict:
        """Build the request envelope for a payload."""
        return {self.ENVELOPE_FIELD: self.encode(payload)}
