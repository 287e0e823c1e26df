"""Content fingerprint for canonical report markup.

The checksum is djb2 over every character of the markup, masked to 32 bits
and printed as 8 hex digits. It is a human-readable integrity hint shown on
the panel and inside the exported PDF, not a security control: collisions
are easy to construct on purpose. Switching to a cryptographic digest would
change every stored checksum, so any such change needs a new versioned
scheme rather than an in-place swap.
"""

from __future__ import annotations

from ..errors import IntegrityMismatch


FINGERPRINT_SEED = 5381
FINGERPRINT_MASK = 0xFFFFFFFF
FINGERPRINT_WIDTH = 8


def fingerprint(markup: str) -> str:
    value = FINGERPRINT_SEED
    for ch in markup or '':
        value = ((value << 5) + value + ord(ch)) & FINGERPRINT_MASK
    return f'{value:0{FINGERPRINT_WIDTH}x}'


def verify_checksum(markup: str, checksum: str, *, report_id: str | None = None) -> str:
    actual = fingerprint(markup)
    expected = str(checksum or '').strip().lower()
    if actual != expected:
        raise IntegrityMismatch(expected=expected, actual=actual, report_id=report_id)
    return actual
