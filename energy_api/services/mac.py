"""
MAC address normalizer for meter identifiers.

Meters report their hardware address in inconsistent textual forms
(``AA:BB:CC:DD:EE:FF``, ``aa-bb-cc-dd-ee-ff``, ``aabbccddeeff``). Every
comparison and map key in the service uses the normalized form produced
here; the display form is only kept to build storage filters verbatim.

Pure functions, no I/O.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import re

# Delimiters and whitespace removed during normalization.
_STRIP_RE = re.compile(r"[:\-\s]")


def normalize_mac(text: str | None) -> str | None:
    """Return the canonical lowercase, delimiter-free form of *text*.

    Idempotent: ``normalize_mac(normalize_mac(x)) == normalize_mac(x)``.

    Args:
        text: MAC address in any textual form.

    Returns:
        The normalized identifier, or ``None`` for ``None``/empty input
        (including input made only of delimiters).
    """
    if not text:
        return None
    normalized = _STRIP_RE.sub("", text).lower()
    return normalized or None


def denormalize_mac(text: str) -> str:
    """Format a normalized 12-character identifier as ``aa:bb:cc:dd:ee:ff``.

    Input of any other length is returned unchanged.
    """
    if len(text) != 12:
        return text
    return ":".join(text[i:i + 2] for i in range(0, 12, 2))
