"""Metadata entries and token claims.

Metadata values travel base64-encoded; claims carry the plaintext.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Union

import structlog
from pydantic import BaseModel, ValidationError

from .errors import CodecError

logger = structlog.get_logger(__name__)


class MetadataEntry(BaseModel):
    key: str
    value: str


class Claim(BaseModel):
    key: str
    value: str


Pairs = Union[Mapping[str, str], Sequence[Union[Mapping[str, Any], MetadataEntry]]]


def transport_encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def transport_decode(value: str) -> str:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise CodecError(f"Value is not base64-encoded UTF-8 text: {exc}") from None


def encode_entries(pairs: Pairs) -> list[MetadataEntry]:
    """Encode plaintext values, from a mapping or a sequence of ``{key, value}`` records."""
    if isinstance(pairs, Mapping):
        items: Iterable[tuple[str, str]] = pairs.items()
    else:
        items = (
            (pair.key, pair.value) if isinstance(pair, MetadataEntry) else (pair["key"], pair["value"])
            for pair in pairs
        )
    return [MetadataEntry(key=key, value=transport_encode(str(value))) for key, value in items]


def with_prefix(pairs: Mapping[str, str], prefix: str) -> dict[str, str]:
    """Move every key under ``prefix``.

    When both ``name`` and ``<prefix>name`` are given, the already-prefixed key wins.
    """
    prefixed: dict[str, str] = {}
    for key, value in pairs.items():
        if key.startswith(prefix):
            prefixed[key] = value
            continue
        target = f"{prefix}{key}"
        if target in pairs:
            logger.warning("claim_key_collision", key=key, kept=target)
            continue
        prefixed[target] = value
    return prefixed


def as_entry(record: Any) -> MetadataEntry:
    if isinstance(record, MetadataEntry):
        return record
    try:
        return MetadataEntry.model_validate(record)
    except ValidationError as exc:
        raise CodecError(f"Not a {{key, value}} string record ({exc.error_count()} error(s))") from None


def decode_if_prefixed(entry: MetadataEntry, prefix: str) -> Claim | None:
    if not entry.key.startswith(prefix):
        return None
    return Claim(key=entry.key, value=transport_decode(entry.value))


def claims_from_metadata(entries: Iterable[Any], prefix: str) -> list[Claim]:
    """Ordered claim set from the prefixed entries.

    Records that are malformed or hold undecodable values are skipped.
    """
    claims: list[Claim] = []
    for record in entries:
        try:
            claim = decode_if_prefixed(as_entry(record), prefix)
        except CodecError as exc:
            key = record.get("key") if isinstance(record, Mapping) else getattr(record, "key", None)
            logger.warning("metadata_entry_skipped", key=key, reason=str(exc))
            continue
        if claim is not None:
            claims.append(claim)
    return claims
