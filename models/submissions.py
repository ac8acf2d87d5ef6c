"""Inbound submission shapes accepted by the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Union


@dataclass(frozen=True, slots=True)
class EncodedSubmission:
    """A base64-wrapped query string such as ``nodeId=..&nodeTemp=..``."""

    payload: str


@dataclass(frozen=True, slots=True)
class PlainSubmission:
    """Key-value parameters supplied directly, e.g. from a query string."""

    params: Mapping[str, str] = field(default_factory=dict)


Submission = Union[EncodedSubmission, PlainSubmission]
