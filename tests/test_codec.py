from __future__ import annotations

import pytest

from idp_actions.codec import (
    Claim,
    MetadataEntry,
    as_entry,
    claims_from_metadata,
    decode_if_prefixed,
    encode_entries,
    transport_decode,
    transport_encode,
    with_prefix,
)
from idp_actions.errors import CodecError


@pytest.mark.parametrize("value", ["", "plain", "Zoë Ångström", "日本語のテキスト", "emoji 🎉", "a=b&c"])
def test_transport_encoding_round_trips(value: str) -> None:
    assert transport_decode(transport_encode(value)) == value


def test_encode_entries_accepts_mapping_and_records() -> None:
    from_mapping = encode_entries({"okta_department": "Finance"})
    from_records = encode_entries([{"key": "okta_department", "value": "Finance"}])
    from_models = encode_entries([MetadataEntry(key="okta_department", value="Finance")])

    assert from_mapping == from_records == from_models
    assert from_mapping == [MetadataEntry(key="okta_department", value="RmluYW5jZQ==")]


def test_decode_if_prefixed_filters_on_key() -> None:
    entry = MetadataEntry(key="okta_groups", value=transport_encode("admins"))
    other = MetadataEntry(key="internal_flag", value=transport_encode("x"))

    assert decode_if_prefixed(entry, "okta_") == Claim(key="okta_groups", value="admins")
    assert decode_if_prefixed(other, "okta_") is None


def test_malformed_value_raises_codec_error() -> None:
    with pytest.raises(CodecError):
        decode_if_prefixed(MetadataEntry(key="okta_bad", value="not base64!"), "okta_")
    with pytest.raises(CodecError):
        transport_decode("//79")  # valid base64, invalid UTF-8


def test_claims_skip_bad_entries_and_keep_order() -> None:
    entries = [
        MetadataEntry(key="okta_b", value=transport_encode("second")),
        MetadataEntry(key="okta_broken", value="%%%"),
        MetadataEntry(key="unrelated", value=transport_encode("hidden")),
        MetadataEntry(key="okta_a", value=transport_encode("first")),
    ]

    claims = claims_from_metadata(entries, "okta_")

    assert claims == [Claim(key="okta_b", value="second"), Claim(key="okta_a", value="first")]


@pytest.mark.parametrize(
    "record",
    [{"key": "okta_a", "value": None}, {"key": "okta_a", "value": 7}, {"key": "okta_a"}, {"value": "eA=="}, "okta_a", None],
)
def test_malformed_records_are_codec_errors(record) -> None:
    with pytest.raises(CodecError):
        as_entry(record)


def test_claims_skip_malformed_records() -> None:
    records = [
        {"key": "okta_a", "value": None},
        {"key": "okta_b", "value": transport_encode("kept")},
        ["okta_c", "x"],
    ]

    assert claims_from_metadata(records, "okta_") == [Claim(key="okta_b", value="kept")]


def test_with_prefix_keeps_prefixed_key_on_collision() -> None:
    assert with_prefix({"department": "Sales", "okta_department": "Finance", "title": "CFO"}, "okta_") == {
        "okta_department": "Finance",
        "okta_title": "CFO",
    }
    assert with_prefix({"okta_department": "Finance", "department": "Sales"}, "okta_") == {
        "okta_department": "Finance",
    }
