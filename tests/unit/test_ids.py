"""Unit tests for chatgate.core.ids.

Covers UUIDv7 layout, per-process monotonicity and the identifier forms
accepted from callers.
"""

from __future__ import annotations

import uuid

import pytest

from chatgate.core.ids import now_ms, parse_message_id, uuid7, uuid7_timestamp_ms


class TestUuid7:
    def test_version_and_variant_bits(self) -> None:
        """Generated ids are RFC 9562 version 7, RFC 4122 variant."""
        value = uuid7()
        assert value.version == 7
        assert value.variant == uuid.RFC_4122

    def test_embedded_timestamp_is_current_time(self) -> None:
        """The top 48 bits carry the creation time in Unix milliseconds."""
        before = now_ms()
        value = uuid7()
        # The counter may borrow a few milliseconds after a burst of ids.
        assert before <= uuid7_timestamp_ms(value) <= before + 1000

    def test_ids_are_strictly_increasing(self) -> None:
        """Ids minted back to back sort in creation order, even within one millisecond."""
        ids = [uuid7() for _ in range(2000)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids), "uuid7() produced a duplicate"

    def test_string_order_matches_creation_order(self) -> None:
        """Canonical strings sort the same way as the ids themselves."""
        ids = [uuid7() for _ in range(100)]
        strings = [str(value) for value in ids]
        assert strings == sorted(strings)


class TestParseMessageId:
    def test_canonical_form(self) -> None:
        value = uuid7()
        assert parse_message_id(str(value)) == value

    def test_hex_form(self) -> None:
        value = uuid7()
        assert parse_message_id(value.hex) == value

    def test_decimal_integer_form(self) -> None:
        """Older clients send the 128-bit integer in decimal."""
        value = uuid7()
        assert parse_message_id(str(value.int)) == value

    def test_surrounding_whitespace_is_ignored(self) -> None:
        value = uuid7()
        assert parse_message_id(f"  {value}\n") == value

    def test_garbage_returns_none(self) -> None:
        assert parse_message_id("not-an-id") is None

    def test_empty_returns_none(self) -> None:
        assert parse_message_id("   ") is None

    def test_integer_out_of_range_returns_none(self) -> None:
        assert parse_message_id(str(1 << 130)) is None

    @pytest.mark.parametrize("raw", ["²", "12³", "١٢٣", "٠" * 32])
    def test_non_ascii_digits_return_none(self, raw: str) -> None:
        assert parse_message_id(raw) is None
