"""Tests for the UUIDv7 expiration codec."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta, timezone

import pytest

from tempshare.expiry.codec import (
    EPOCH,
    FileReference,
    MonotonicEntropy,
    RandomEntropy,
    decode_expiration,
    encode_id,
    extension_of,
    parse_reference,
    to_unix_ms,
)
from tempshare.shared.errors import (
    InvalidExpirationError,
    InvalidFileNameError,
    InvalidUUIDTimestampError,
    InvalidUUIDVersionError,
    MissingFileNameError,
    UnknownFileTypeError,
)

_EXPIRATION = datetime(2024, 6, 10, 9, 0, 0, 123456, tzinfo=UTC)


class _FixedEntropy:
    def mint(self, unix_ms: int) -> tuple[int, int]:
        return 0xABC, 0x1234


@pytest.mark.unit
class TestEncodeId:
    def test_is_version_7_rfc_4122(self) -> None:
        object_id = encode_id(_EXPIRATION)
        assert object_id.version == 7
        assert object_id.variant == uuid.RFC_4122

    def test_embeds_expiration_milliseconds(self) -> None:
        object_id = encode_id(_EXPIRATION)
        assert object_id.int >> 80 == to_unix_ms(_EXPIRATION)

    def test_entropy_bits_are_placed(self) -> None:
        object_id = encode_id(_EXPIRATION, entropy=_FixedEntropy())
        assert (object_id.int >> 64) & 0xFFF == 0xABC
        assert object_id.int & ((1 << 62) - 1) == 0x1234

    def test_rejects_naive_datetime(self) -> None:
        with pytest.raises(InvalidExpirationError):
            encode_id(datetime(2024, 6, 10, 9))

    def test_rejects_instant_before_epoch(self) -> None:
        with pytest.raises(InvalidExpirationError):
            encode_id(EPOCH - timedelta(milliseconds=1))

    def test_epoch_is_representable(self) -> None:
        assert decode_expiration(encode_id(EPOCH)) == EPOCH

    def test_same_millisecond_ids_are_ordered(self) -> None:
        entropy = MonotonicEntropy()
        ids = [encode_id(_EXPIRATION, entropy=entropy) for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 50

    def test_random_entropy_ids_are_unique(self) -> None:
        entropy = RandomEntropy()
        ids = {encode_id(_EXPIRATION, entropy=entropy) for _ in range(100)}
        assert len(ids) == 100


@pytest.mark.unit
class TestDecodeExpiration:
    def test_round_trip_truncates_to_milliseconds(self) -> None:
        decoded = decode_expiration(encode_id(_EXPIRATION))
        assert decoded == datetime(2024, 6, 10, 9, 0, 0, 123000, tzinfo=UTC)
        assert decoded.tzinfo is not None

    def test_offset_timezone_decodes_to_same_instant(self) -> None:
        local = _EXPIRATION.astimezone(timezone(timedelta(hours=2)))
        assert decode_expiration(encode_id(local)) == decode_expiration(encode_id(_EXPIRATION))

    def test_rejects_uuid4(self) -> None:
        with pytest.raises(InvalidUUIDVersionError):
            decode_expiration(uuid.uuid4())

    def test_rejects_non_rfc_variant(self) -> None:
        value = encode_id(_EXPIRATION).int & ~(0b11 << 62)  # NCS variant bits
        with pytest.raises(InvalidUUIDVersionError):
            decode_expiration(uuid.UUID(int=value))

    def test_timestamp_beyond_datetime_range(self) -> None:
        value = ((1 << 48) - 1) << 80 | (0x7 << 76) | (0b10 << 62)
        with pytest.raises(InvalidUUIDTimestampError):
            decode_expiration(uuid.UUID(int=value))


@pytest.mark.unit
class TestFileReference:
    def test_mint_and_name(self) -> None:
        ref = FileReference.mint(_EXPIRATION, "mp4", entropy=_FixedEntropy())
        assert ref.name == f"{ref.object_id}.mp4"
        assert str(ref) == ref.name
        assert ref.expiration == decode_expiration(ref.object_id)

    def test_parse_round_trip(self) -> None:
        ref = FileReference.mint(_EXPIRATION, "png")
        assert parse_reference(ref.name) == ref

    def test_parse_canonicalises_uuid(self) -> None:
        ref = FileReference.mint(_EXPIRATION, "png")
        parsed = parse_reference(f"{str(ref.object_id).upper()}.png")
        assert parsed.name == ref.name

    def test_parse_uses_last_dot(self) -> None:
        object_id = encode_id(_EXPIRATION)
        with pytest.raises(InvalidFileNameError):
            parse_reference(f"{object_id}.tar.gz")

    @pytest.mark.parametrize(
        "name",
        ["", "no-extension", "not-a-uuid.mp4", "0190a1b2.mp4", "{uuid}.", "{uuid}.a/b", "{uuid}.."],
    )
    def test_parse_rejects_malformed(self, name: str) -> None:
        name = name.replace("{uuid}", str(encode_id(_EXPIRATION)))
        with pytest.raises(InvalidFileNameError):
            parse_reference(name)

    def test_parse_accepts_non_v7_uuid_until_decoded(self) -> None:
        ref = parse_reference(f"{uuid.uuid4()}.txt")
        with pytest.raises(InvalidUUIDVersionError):
            _ = ref.expiration


@pytest.mark.unit
class TestExtensionOf:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("movie.mp4", "mp4"),
            ("archive.tar.gz", "gz"),
            ("clips/holiday.webm", "webm"),
            ("C:\\Users\\me\\photo.PNG", "PNG"),
            ("  notes.txt  ", "txt"),
        ],
    )
    def test_extracts_last_extension(self, filename: str, expected: str) -> None:
        assert extension_of(filename) == expected

    @pytest.mark.parametrize("filename", [None, "", "   "])
    def test_missing_name(self, filename: str | None) -> None:
        with pytest.raises(MissingFileNameError):
            extension_of(filename)

    @pytest.mark.parametrize("filename", ["README", ".bashrc", "trailing.", "weird.ex$e"])
    def test_unknown_type(self, filename: str) -> None:
        with pytest.raises(UnknownFileTypeError):
            extension_of(filename)
