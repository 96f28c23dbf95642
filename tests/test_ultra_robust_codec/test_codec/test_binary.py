"""Tests for the Base64, Base32 and hex codecs."""

import pytest

from ultra_robust_codec.codec.binary import (
    decode_text,
    decoded_length,
    encode_bytes,
    encoded_length,
)
from ultra_robust_codec.shared.config import DecodeOptions, EncodeOptions, ErrorMode
from ultra_robust_codec.shared.errors import BufferOverflow, InvalidEncoding
from ultra_robust_codec.shared.formats import EncodingFormat

HELLO = b"Hello, World!"
HELLO_B64 = "SGVsbG8sIFdvcmxkIQ=="


def _decode(text, fmt=EncodingFormat.BASE64, options=None, mode=ErrorMode.STRICT):
    return decode_text(text, fmt, options or DecodeOptions(), mode, len(text))


class TestEncodedLength:
    """Test suite for output size prediction."""

    @pytest.mark.parametrize("size,fmt,padding,expected", [
        (13, EncodingFormat.BASE64, True, 20),
        (13, EncodingFormat.BASE64, False, 18),
        (0, EncodingFormat.BASE64, True, 0),
        (6, EncodingFormat.BASE32, True, 16),
        (6, EncodingFormat.BASE32, False, 10),
        (4, EncodingFormat.HEX, True, 8),
    ])
    def test_single_line(self, size, fmt, padding, expected):
        """Test lengths without wrapping."""
        assert encoded_length(size, fmt, padding) == expected

    def test_wrapped(self):
        """Test line endings are counted between lines only."""
        assert encoded_length(60, EncodingFormat.BASE64, True, 76, "\r\n") == 82
        assert encoded_length(57, EncodingFormat.BASE64, True, 76, "\r\n") == 76

    @pytest.mark.parametrize("chars,fmt,expected", [
        (18, EncodingFormat.BASE64, 13),
        (20, EncodingFormat.BASE64, 15),
        (10, EncodingFormat.BASE32, 6),
        (8, EncodingFormat.HEX, 4),
    ])
    def test_decoded_length(self, chars, fmt, expected):
        """Test bytes produced by unpadded data characters."""
        assert decoded_length(chars, fmt) == expected


class TestEncodeBytes:
    """Test suite for encoding."""

    @pytest.mark.parametrize("data,fmt,expected", [
        (HELLO, EncodingFormat.BASE64, HELLO_B64),
        (b"\xfb\xff", EncodingFormat.BASE64, "+/8="),
        (b"\xfb\xff", EncodingFormat.BASE64URL, "-_8="),
        (b"Hi", EncodingFormat.BASE64_RAW, "SGk"),
        (b"foobar", EncodingFormat.BASE32, "MZXW6YTBOI======"),
        (b"foobar", EncodingFormat.BASE32HEX, "CPNMUOJ1E8======"),
        (b"\xde\xad", EncodingFormat.HEX, "dead"),
        (b"", EncodingFormat.BASE64, ""),
    ])
    def test_known_vectors(self, data, fmt, expected):
        """Test RFC 4648 style vectors."""
        assert encode_bytes(data, fmt, EncodeOptions()) == expected

    def test_unpadded(self):
        """Test padding can be disabled."""
        assert encode_bytes(HELLO, EncodingFormat.BASE64,
                            EncodeOptions.unpadded()) == "SGVsbG8sIFdvcmxkIQ"
        assert encode_bytes(b"f", EncodingFormat.BASE32,
                            EncodeOptions(padding=False)) == "MY"

    def test_hex_upper_case(self):
        """Test hex letter case."""
        assert encode_bytes(b"\xde\xad", EncodingFormat.HEX,
                            EncodeOptions(case="upper")) == "DEAD"

    def test_mime_wrapping(self):
        """Test lines are wrapped at 76 columns with CRLF."""
        text = encode_bytes(b"\x00" * 60, EncodingFormat.BASE64, EncodeOptions.mime())

        assert text == "A" * 76 + "\r\n" + "AAAA"
        assert len(text) == encoded_length(60, EncodingFormat.BASE64, True, 76, "\r\n")

    def test_prediction_matches_output(self):
        """Test the predicted size equals the produced size across chunks."""
        data = bytes(range(256)) * 300
        options = EncodeOptions.pem()

        text = encode_bytes(data, EncodingFormat.BASE64, options)

        assert len(text) == encoded_length(len(data), EncodingFormat.BASE64, True, 64, "\n")

    def test_size_limit_checked_before_encoding(self):
        """Test the predicted size is checked against the limit."""
        with pytest.raises(BufferOverflow) as exc_info:
            encode_bytes(b"x" * 100, EncodingFormat.BASE64,
                         EncodeOptions(max_encoded_size=100))

        assert exc_info.value.actual == 136
        assert exc_info.value.maximum == 100


class TestDecodeText:
    """Test suite for decoding and input repair."""

    def test_padded(self):
        """Test a padded Base64 string."""
        outcome = _decode(HELLO_B64)

        assert outcome.data == HELLO
        assert outcome.corrections == 0
        assert outcome.warnings == []

    def test_missing_padding_accepted(self):
        """Test that unpadded input decodes in strict mode."""
        assert _decode("SGVsbG8sIFdvcmxkIQ").data == HELLO

    def test_whitespace_ignored(self):
        """Test embedded whitespace is skipped for binary formats."""
        assert _decode("SGVs\nbG8s IFdv\r\ncmxkIQ==").data == HELLO

    def test_whitespace_rejected_when_configured(self):
        """Test whitespace is invalid when ignore_whitespace is False."""
        with pytest.raises(InvalidEncoding) as exc_info:
            _decode("SGVs\nbG8=", options=DecodeOptions(ignore_whitespace=False))

        assert exc_info.value.details == {"position": 4, "character": "\n"}

    def test_invalid_character_strict(self):
        """Test the position of the first invalid character is reported."""
        with pytest.raises(InvalidEncoding, match="Invalid base64 character") as exc_info:
            _decode("SGVs*bG8=")

        assert exc_info.value.details == {"position": 4, "character": "*"}

    @pytest.mark.parametrize("text,position,character", [
        ("QU JD!", 4, "!"),
        ("QU J=D", 4, "D"),
        ("Q\nU\r\nJ\tD\n*", 4, "*"),
    ])
    def test_positions_skip_whitespace(self, text, position, character):
        """Test every error position counts only non-whitespace characters."""
        with pytest.raises(InvalidEncoding) as exc_info:
            _decode(text)

        assert exc_info.value.details == {"position": position, "character": character}

    def test_invalid_character_skipped(self):
        """Test invalid characters are skipped in replace mode."""
        outcome = _decode("SGVs*bG8sIFdvcmxkIQ==", mode=ErrorMode.REPLACE)

        assert outcome.data == HELLO
        assert outcome.corrections == 1
        assert outcome.warnings == ["skipped_invalid_characters:1"]

    def test_url_alphabet_enforced(self):
        """Test standard alphabet characters are invalid in base64url."""
        with pytest.raises(InvalidEncoding):
            _decode("+/8=", EncodingFormat.BASE64URL)
        assert _decode("-_8=", EncodingFormat.BASE64URL).data == b"\xfb\xff"

    def test_incorrect_padding(self):
        """Test a wrong number of padding characters."""
        with pytest.raises(InvalidEncoding, match="Incorrect padding"):
            _decode("SGVsbG8sIFdvcmxkIQ=")

    def test_incorrect_padding_repaired(self):
        """Test wrong padding is repaired outside strict mode."""
        outcome = _decode("SGVsbG8sIFdvcmxkIQ=", mode=ErrorMode.REPLACE)

        assert outcome.data == HELLO
        assert outcome.corrections == 1
        assert "repaired_padding" in outcome.warnings

    def test_data_after_padding(self):
        """Test data following padding is rejected."""
        with pytest.raises(InvalidEncoding, match="Data after padding"):
            _decode("SGk=SGk=")

    def test_data_after_padding_repaired(self):
        """Test interior padding is removed outside strict mode."""
        outcome = _decode("SGk=SGk=", mode=ErrorMode.IGNORE)

        assert outcome.corrections >= 1
        assert "removed_interior_padding" in outcome.warnings

    def test_raw_rejects_padding(self):
        """Test base64_raw input must not carry padding."""
        with pytest.raises(InvalidEncoding, match="must not be padded"):
            _decode("SGk=", EncodingFormat.BASE64_RAW)
        assert _decode("SGk", EncodingFormat.BASE64_RAW).data == b"Hi"

    def test_padding_validation_disabled(self):
        """Test padding is only stripped when validation is off."""
        outcome = _decode("SGk===", options=DecodeOptions(validate_padding=False))

        assert outcome.data == b"Hi"
        assert outcome.corrections == 0
        assert outcome.warnings == ["padding_not_validated"]

    def test_truncated_input(self):
        """Test a residual length that cannot encode whole bytes."""
        with pytest.raises(InvalidEncoding, match="Truncated"):
            _decode("SGVsb")

    def test_truncated_input_repaired(self):
        """Test the dangling character is dropped outside strict mode."""
        outcome = _decode("SGVsb", mode=ErrorMode.REPLACE)

        assert outcome.data == b"Hel"
        assert outcome.warnings == ["dropped_trailing_character"]

    def test_base32_case_insensitive(self):
        """Test Base32 accepts lower-case input."""
        assert _decode("mzxw6ytboi", EncodingFormat.BASE32).data == b"foobar"
        assert _decode("cpnmuoj1e8======", EncodingFormat.BASE32HEX).data == b"foobar"

    def test_base32_impossible_length(self):
        """Test Base32 residual lengths that encode no whole byte."""
        with pytest.raises(InvalidEncoding, match="Truncated"):
            _decode("MZX", EncodingFormat.BASE32)

    def test_hex(self):
        """Test hex decoding with either case and whitespace."""
        assert _decode("DEAD", EncodingFormat.HEX).data == b"\xde\xad"
        assert _decode("de ad", EncodingFormat.HEX).data == b"\xde\xad"

    def test_hex_odd_length(self):
        """Test an odd number of hex digits."""
        with pytest.raises(InvalidEncoding, match="Truncated"):
            _decode("abc", EncodingFormat.HEX)

    def test_hex_rejects_padding(self):
        """Test '=' is not part of the hex alphabet."""
        with pytest.raises(InvalidEncoding, match="Invalid hex character"):
            _decode("de=", EncodingFormat.HEX)

    def test_size_limit_checked_before_decoding(self):
        """Test the predicted output size is checked first."""
        with pytest.raises(BufferOverflow) as exc_info:
            _decode("A" * 1024, options=DecodeOptions(max_decoded_size=512))

        assert exc_info.value.actual == 768
        assert exc_info.value.maximum == 512

    def test_large_input_across_chunks(self):
        """Test decoding input longer than one chunk."""
        data = bytes(range(256)) * 1024
        text = encode_bytes(data, EncodingFormat.BASE64, EncodeOptions())

        assert _decode(text).data == data
