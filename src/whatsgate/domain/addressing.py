"""Addressed identities and phone-number format checks.

Individual contacts live in the ``@c.us`` address space, groups in ``@g.us``.
The broadcast pseudo-sender ``status@broadcast`` carries status updates, not
messages, and is never buffered.
"""

import re

CONTACT_SUFFIX = "@c.us"
GROUP_SUFFIX = "@g.us"
BROADCAST_SENDER = "status@broadcast"

_PHONE_PATTERN = re.compile(r"^[\d\-+()]{7,20}$")
_WHITESPACE = re.compile(r"\s")
_NON_DIGITS = re.compile(r"\D")


def clean_phone_number(number: str) -> str:
    return _WHITESPACE.sub("", number)


def phone_digits(number: str) -> str:
    """Digits only: the form the messaging network uses in contact ids."""
    return _NON_DIGITS.sub("", number)


def is_valid_phone_number(number: str) -> bool:
    """Digits and ``+ - ( )`` only, 7..20 chars once whitespace is stripped.

    >>> is_valid_phone_number("+1 (555) 123-4567")
    True
    >>> is_valid_phone_number("abc")
    False
    """
    return bool(_PHONE_PATTERN.match(clean_phone_number(number)))


def is_group_address(address: str) -> bool:
    return address.endswith(GROUP_SUFFIX)


def to_chat_id(destination: str, is_group: bool) -> str:
    """Append the address-space suffix unless the destination already has it."""
    suffix = GROUP_SUFFIX if is_group else CONTACT_SUFFIX
    if destination.endswith(suffix):
        return destination
    if is_group:
        return f"{destination}{suffix}"
    return f"{phone_digits(destination)}{suffix}"


def to_contact_id(number: str) -> str:
    return f"{phone_digits(number)}{CONTACT_SUFFIX}"
