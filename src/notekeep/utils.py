"""Utility functions for the notekeep persistence core."""

from typing import Optional

# Minimum number of trailing digits two numbers must share to be considered
# the same subscriber when their prefixes differ.
MIN_MATCH = 7

_DIALABLE = set("0123456789+*#")


def normalize_phone_number(number: Optional[str]) -> str:
    """Strip a phone number down to its dialable characters.

    Separators such as spaces, dashes, dots and parentheses are removed.
    A '+' is only kept in leading position.

    Examples:
        "(555) 123-4567" -> "5551234567"
        "+1 555.123.4567" -> "+15551234567"

    Args:
        number: The raw phone number, may be None.

    Returns:
        The normalized number, or an empty string.
    """
    if not number:
        return ""
    chars = [c for c in str(number).strip() if c in _DIALABLE]
    result = "".join(chars)
    if "+" in result[1:]:
        result = result[0] + result[1:].replace("+", "")
    return result


def phone_numbers_equal(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two phone numbers the way a dialer would.

    Numbers are equal when their normalized forms match exactly, or when
    both have at least MIN_MATCH digits and the shorter one is a suffix of
    the longer one. The second rule lets a local number match the same
    number written with a country or trunk prefix.

    Examples:
        >>> phone_numbers_equal("555-123-4567", "(555) 1234567")
        True
        >>> phone_numbers_equal("+1 555 123 4567", "555-123-4567")
        True
        >>> phone_numbers_equal("123", "0123")
        False
    """
    left = normalize_phone_number(a)
    right = normalize_phone_number(b)
    if not left or not right:
        return False
    if left == right:
        return True

    left_digits = left.lstrip("+")
    right_digits = right.lstrip("+")
    shorter, longer = sorted((left_digits, right_digits), key=len)
    if len(shorter) < MIN_MATCH:
        return False
    return longer.endswith(shorter)


def first_line_of(snippet: Optional[str]) -> Optional[str]:
    """Trim a snippet and cut it at the first newline.

    Examples:
        >>> first_line_of("hello\\nworld")
        'hello'
        >>> first_line_of("  hi  ")
        'hi'
    """
    if snippet is None:
        return None
    snippet = snippet.strip()
    index = snippet.find("\n")
    if index != -1:
        snippet = snippet[:index]
    return snippet
