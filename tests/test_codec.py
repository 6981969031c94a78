"""Base58 short code encoding and decoding."""

import pytest

from shortlink.codec import BASE58_ALPHABET, MAX_ID, decode_id, encode_id
from shortlink.errors import InvalidCodeError


def test_alphabet_has_no_ambiguous_glyphs():
    assert len(BASE58_ALPHABET) == 58
    for glyph in "0OIl":
        assert glyph not in BASE58_ALPHABET


def test_encode_small_ids():
    assert encode_id(1) == "1"
    assert encode_id(2) == "2"
    assert encode_id(58) == "z"
    assert encode_id(59) == "21"


def test_decode_small_codes():
    assert decode_id("1") == 1
    assert decode_id("z") == 58
    assert decode_id("21") == 59


@pytest.mark.parametrize("shortlink_id", [1, 57, 58, 59, 3364, 3365, 123456789, 2**63 - 1, MAX_ID])
def test_decode_inverts_encode(shortlink_id):
    assert decode_id(encode_id(shortlink_id)) == shortlink_id


def test_codes_grow_in_length_with_ids():
    assert len(encode_id(58)) == 1
    assert len(encode_id(59)) == 2
    assert len(encode_id(MAX_ID)) == 11


@pytest.mark.parametrize("shortlink_id", [0, -1, MAX_ID + 1])
def test_encode_rejects_out_of_range_ids(shortlink_id):
    with pytest.raises(ValueError):
        encode_id(shortlink_id)


@pytest.mark.parametrize("code", ["", "0", "O", "I", "l", "ab-c", "abc/", "ab c", "é"])
def test_decode_rejects_invalid_codes(code):
    with pytest.raises(InvalidCodeError):
        decode_id(code)


def test_decode_rejects_leading_zero_digit():
    # "12" would alias "2"
    with pytest.raises(InvalidCodeError):
        decode_id("12")


def test_decode_fails_closed_on_overflow():
    with pytest.raises(InvalidCodeError):
        decode_id("z" * 12)
    with pytest.raises(InvalidCodeError):
        decode_id("z" * 11)


def test_invalid_code_is_a_bad_request():
    with pytest.raises(InvalidCodeError) as exc_info:
        decode_id("0")
    assert exc_info.value.status_code == 400
