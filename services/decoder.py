"""Normalises the supported submission encodings into candidate readings."""

from __future__ import annotations

import base64
import binascii
from typing import Mapping, Optional, Sequence
from urllib.parse import parse_qs, urlencode

from models.records import CandidateReading
from models.submissions import EncodedSubmission, PlainSubmission, Submission
from services.errors import DecodeError

# Keys carried inside a base64 payload.
ENCODED_NODE_KEY = "nodeId"
ENCODED_TEMPERATURE_KEY = "nodeTemp"
ENCODED_HUMIDITY_KEY = "nodeHum"
ENCODED_TIMESTAMP_KEY = "timeReceived"

# Accepted plain parameter names, in order of preference.
PLAIN_NODE_KEYS = ("node_name", "node")
PLAIN_TEMPERATURE_KEYS = ("temperature", "temp")
PLAIN_HUMIDITY_KEYS = ("humidity", "hum")
PLAIN_TIMESTAMP_KEYS = ("time_received", "time")

ENCODING_ENCODED = "encoded"
ENCODING_PLAIN = "plain"


def encode_payload(
    node: str,
    temperature: object,
    timestamp: Optional[str] = None,
    humidity: Optional[object] = None,
) -> str:
    """Build the base64 payload a node sends in the encoded form."""
    fields = [(ENCODED_NODE_KEY, node), (ENCODED_TEMPERATURE_KEY, str(temperature))]
    if timestamp is not None:
        fields.append((ENCODED_TIMESTAMP_KEY, timestamp))
    if humidity is not None:
        fields.append((ENCODED_HUMIDITY_KEY, str(humidity)))
    return base64.b64encode(urlencode(fields).encode("utf-8")).decode("ascii")


def submission_encoding(submission: Submission) -> Optional[str]:
    if isinstance(submission, EncodedSubmission):
        return ENCODING_ENCODED
    if isinstance(submission, PlainSubmission):
        return ENCODING_PLAIN
    return None


def _pick(params: Mapping[str, str], keys: Sequence[str]) -> Optional[str]:
    """Return the first non-blank value among ``keys``.

    An empty string is returned when a key is present but every candidate is
    blank, and ``None`` when none of the keys were supplied.
    """
    seen = False
    for key in keys:
        value = params.get(key)
        if value is None:
            continue
        seen = True
        candidate = str(value).strip()
        if candidate:
            return candidate
    return "" if seen else None


def _optional(value: Optional[str]) -> Optional[str]:
    return value or None


class ReadingDecoder:
    """Turns an encoded or plain submission into a ``CandidateReading``."""

    def decode(self, submission: Submission) -> CandidateReading:
        if isinstance(submission, EncodedSubmission):
            return self.decode_encoded(submission.payload)
        if isinstance(submission, PlainSubmission):
            return self.decode_plain(submission.params)
        raise DecodeError(f"Unsupported submission type: {type(submission).__name__}.")

    def decode_encoded(self, payload: str) -> CandidateReading:
        try:
            raw = base64.b64decode(payload.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError("Invalid Base64 data.") from exc
        try:
            inner = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("Decoded payload is not valid UTF-8 text.") from exc

        parsed = parse_qs(inner, keep_blank_values=True)
        params = {key: values[0] for key, values in parsed.items() if values}
        return self._build(
            node=_pick(params, (ENCODED_NODE_KEY,)),
            temperature=_pick(params, (ENCODED_TEMPERATURE_KEY,)),
            humidity=_pick(params, (ENCODED_HUMIDITY_KEY,)),
            timestamp=_pick(params, (ENCODED_TIMESTAMP_KEY,)),
            encoding=ENCODING_ENCODED,
        )

    def decode_plain(self, params: Mapping[str, str]) -> CandidateReading:
        return self._build(
            node=_pick(params, PLAIN_NODE_KEYS),
            temperature=_pick(params, PLAIN_TEMPERATURE_KEYS),
            humidity=_pick(params, PLAIN_HUMIDITY_KEYS),
            timestamp=_pick(params, PLAIN_TIMESTAMP_KEYS),
            encoding=ENCODING_PLAIN,
        )

    @staticmethod
    def _build(
        node: Optional[str],
        temperature: Optional[str],
        humidity: Optional[str],
        timestamp: Optional[str],
        encoding: str,
    ) -> CandidateReading:
        if node is None:
            raise DecodeError("missing required field: node", field="node")
        if temperature is None:
            raise DecodeError("missing required field: temperature", field="temperature")
        return CandidateReading(
            node=node,
            temperature=temperature,
            humidity=_optional(humidity),
            timestamp=_optional(timestamp),
            encoding=encoding,
        )
