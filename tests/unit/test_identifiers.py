"""Tests for em_common.identifiers and em_common.datetime_utils."""

import uuid
from datetime import UTC, datetime, timedelta, timezone

from src.em_common.datetime_utils import compact_timestamp, hours_from_now, minutes_from_now
from src.em_common.identifiers import gateway_reference, new_id


def test_new_id_is_uuid4_string() -> None:
    value = new_id()
    assert uuid.UUID(value).version == 4


def test_new_id_unique() -> None:
    assert len({new_id() for _ in range(100)}) == 100


def test_gateway_reference_shape() -> None:
    ref = gateway_reference("JC")
    assert ref.startswith("JC")
    assert ref[2:].isdigit()
    assert len(ref) == 2 + 13 + 3


def test_hours_from_now_uses_given_anchor() -> None:
    anchor = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
    assert hours_from_now(48, anchor) == anchor + timedelta(hours=48)


def test_minutes_from_now_default_is_aware() -> None:
    assert minutes_from_now(30).tzinfo is not None


def test_compact_timestamp_converts_to_utc() -> None:
    karachi = timezone(timedelta(hours=5))
    moment = datetime(2026, 10, 19, 13, 5, 9, tzinfo=karachi)
    assert compact_timestamp(moment) == "20261019080509"
