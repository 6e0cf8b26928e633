"""Canonical JSON serialisation and content hashing.

Signatures and digests in a2a-trust are always computed over RFC 8785
(JSON Canonicalization Scheme) output so that independent
implementations produce byte-identical input for the same value.
"""
from __future__ import annotations

import hashlib
import json
import math
from typing import Any

# Integers beyond this cannot be represented exactly as IEEE 754 doubles.
_MAX_SAFE_INTEGER = 2**53 - 1

# ---------------------------------------------------------------------------
# RFC 8785 canonical JSON serialisation
# ---------------------------------------------------------------------------

def _serialize_number(value: float) -> str:
    """Serialise a finite double the way ECMAScript ``Number::toString`` does.

    ``repr`` already yields the shortest round-trip digits; only the
    placement of the decimal point and the exponent notation differ.
    """
    if value == 0:
        return "0"
    if value < 0:
        return "-" + _serialize_number(-value)

    mantissa, _, exponent = repr(value).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    all_digits = int_part + frac_part
    digits = all_digits.lstrip("0")
    # value == 0.<digits> * 10**point
    point = len(int_part) - (len(all_digits) - len(digits)) + (int(exponent) if exponent else 0)
    digits = digits.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        return digits + "0" * (point - k)
    if 0 < point <= 21:
        return f"{digits[:point]}.{digits[point:]}"
    if -6 < point <= 0:
        return "0." + "0" * -point + digits
    exp = point - 1
    sign = "+" if exp >= 0 else "-"
    head = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
    return f"{head}e{sign}{abs(exp)}"


def _jcs_serialize_value(value: Any) -> str:
    """Serialise a single JSON value per RFC 8785 (JCS).

    * Strings: minimal UTF-8 encoding, mandatory escapes only.
    * Numbers: IEEE 754 doubles in ECMAScript notation; integers within
      the safe range are written verbatim.
    * Booleans / null: lowercase literals.
    * Objects: keys sorted by their UTF-16 code units.
    * Arrays: elements in order.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        if abs(value) <= _MAX_SAFE_INTEGER:
            return str(value)
        return _serialize_number(float(value))
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            msg = "NaN and Infinity are not valid JSON values"
            raise ValueError(msg)
        return _serialize_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        elements = ",".join(_jcs_serialize_value(v) for v in value)
        return f"[{elements}]"
    if isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                msg = f"JSON object keys must be strings, got {type(key).__name__}"
                raise TypeError(msg)
        pairs = ",".join(
            f"{json.dumps(k, ensure_ascii=False)}:{_jcs_serialize_value(value[k])}"
            for k in sorted(value, key=lambda k: k.encode("utf-16-be"))
        )
        return "{" + pairs + "}"
    msg = f"Unsupported type for JCS serialisation: {type(value)}"
    raise TypeError(msg)


def canonical_json(data: Any) -> str:
    """Return the RFC 8785 canonical JSON string for *data*.

    Parameters
    ----------
    data:
        Any JSON-compatible value (``dict``, ``list``, ``str``, numbers,
        ``bool``, ``None``).

    Returns
    -------
    str
        A deterministic JSON string suitable for hashing and signing.
    """
    return _jcs_serialize_value(data)


def canonical_bytes(data: Any) -> bytes:
    """UTF-8 encoded :func:`canonical_json`."""
    return canonical_json(data).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Lowercase hex SHA-256 of *data* (64 characters)."""
    return hashlib.sha256(data).hexdigest()
