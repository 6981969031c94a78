"""Bijective Base58 codec between shortlink ids and public short codes.

The alphabet drops the glyphs that are easy to confuse when read aloud or
copied by hand (``0``, ``O``, ``I`` and ``l``).

Offset convention: id 0 is never issued by the store, so ``encode`` maps
``id - 1`` and ``decode`` adds the 1 back. The smallest id, 1, becomes the
single character ``"1"``.

Examples::

    >>> encode_id(1)
    '1'
    >>> encode_id(59)
    '21'
    >>> decode_id("21")
    59

Codes are canonical: a multi-character code may not start with the first
alphabet symbol (it would be a zero digit and alias a shorter code), so
``encode_id(decode_id(code)) == code`` for every accepted code.
"""

__all__ = ["BASE58_ALPHABET", "MAX_ID", "encode_id", "decode_id"]

from shortlink.errors import InvalidCodeError

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE = len(BASE58_ALPHABET)
MAX_ID = 2**64 - 1

_CHAR_VALUES = {char: value for value, char in enumerate(BASE58_ALPHABET)}


def encode_id(shortlink_id: int) -> str:
    """Encode a positive 64-bit id into its short code.

    Raises:
        ValueError: If the id is outside ``1..MAX_ID``.
    """
    if shortlink_id < 1 or shortlink_id > MAX_ID:
        raise ValueError(f"id must be in 1..{MAX_ID}, got {shortlink_id!r}")

    number = shortlink_id - 1
    if number == 0:
        return BASE58_ALPHABET[0]

    result = []
    while number > 0:
        number, remainder = divmod(number, BASE)
        result.append(BASE58_ALPHABET[remainder])

    return "".join(result[::-1])


def decode_id(code: str) -> int:
    """Decode a short code back into its id.

    Raises:
        InvalidCodeError: For empty input, characters outside the alphabet,
            non-canonical codes, or values beyond the 64-bit range.
    """
    if not code:
        raise InvalidCodeError("Empty short code")

    if len(code) > 1 and code[0] == BASE58_ALPHABET[0]:
        raise InvalidCodeError(f"Non-canonical short code: {code!r}")

    number = 0
    for char in code:
        value = _CHAR_VALUES.get(char)
        if value is None:
            raise InvalidCodeError(f"Invalid character {char!r} in short code")
        number = number * BASE + value
        # fail closed instead of wrapping
        if number >= MAX_ID:
            raise InvalidCodeError(f"Short code {code!r} overflows the id range")

    return number + 1
