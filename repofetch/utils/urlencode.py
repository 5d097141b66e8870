"""
Percent-encoding helpers used to compose credential strings for the transfer engine.
"""

_HEX_DIGITS = b"0123456789abcdef"


def _is_unreserved(byte: int) -> bool:
    # ASCII ranges only, independent of the current locale
    return (
        0x41 <= byte <= 0x5A  # A-Z
        or 0x61 <= byte <= 0x7A  # a-z
        or 0x30 <= byte <= 0x39  # 0-9
        or byte in b"-._~"
    )


def url_encode(src: bytes | str) -> bytes | str:
    """
    Converts the input to its URL encoded form.

    All input bytes that are not a-z, A-Z, 0-9, '-', '.', '_' or '~' are converted
    to "%NN" where NN is a two-digit lower-case hexadecimal number. A `str` is
    encoded to UTF-8 first and the result is returned as `str`.

    Args:
        src: The bytes or text to encode.

    Returns:
        The encoded value, of the same type as `src`.
    """
    if isinstance(src, str):
        return url_encode(src.encode("utf-8")).decode("ascii")

    encoded = bytearray()
    for byte in src:
        if _is_unreserved(byte):
            encoded.append(byte)
        else:
            encoded += b"%" + bytes((_HEX_DIGITS[byte >> 4], _HEX_DIGITS[byte & 0x0F]))
    return bytes(encoded)


def format_user_pass_string(user: str, password: str, encode: bool) -> str:
    """
    Returns user and password in `user:password` form.

    If `encode` is True, special characters in user and password are URL encoded.
    The separating colon is never encoded.
    """
    if encode:
        return f"{url_encode(user)}:{url_encode(password)}"
    return f"{user}:{password}"
