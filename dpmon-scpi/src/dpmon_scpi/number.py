"""SCPI number parsing utilities.

Handles NR1 (integer), NR2 (fixed-point), and NR3 (scientific notation)
numeric formats as well as the special float values defined by SCPI (NAN,
INF, NINF).
"""

from __future__ import annotations

import re
from typing import Sequence

from dpmon_scpi.errors import ScpiParseError

_SPECIAL_FLOAT_MAP: dict[str, float] = {
    "NAN": float("nan"),
    "INF": float("inf"),
    "NINF": float("-inf"),
    "-INF": float("-inf"),
}

# NR1, NR2 or NR3 after stripping and upper-casing.
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:E[+-]?\d+)?$")


def parse_number(text: str) -> float:
    """Parse a SCPI numeric response into a float.

    Accepts NR1 (``"42"``), NR2 (``"1.23"``), NR3 (``"1.23E+4"``),
    and the special tokens ``NAN``, ``INF``, ``NINF``, and ``-INF``.
    Anything else, including Python-only literal forms such as ``"1_0"``
    or ``"infinity"``, is rejected.

    Args:
        text: The raw response string (leading/trailing whitespace is stripped).

    Returns:
        The parsed float value.

    Raises:
        ScpiParseError: If *text* cannot be parsed as a SCPI number.
    """
    token = text.strip().upper()
    special = _SPECIAL_FLOAT_MAP.get(token)
    if special is not None:
        return special
    if _NUMBER_RE.match(token) is None:
        raise ScpiParseError(f"Invalid SCPI number: {text!r}", response=text)
    return float(token)


def parse_fields(text: str, names: Sequence[str]) -> tuple[float, ...]:
    """Parse a comma-separated reply with a fixed, named set of numeric fields.

    Args:
        text: The reply payload (e.g. ``"1.234,5.678,9.012"``).
        names: Field names in reply order; also fixes the expected count.

    Returns:
        The parsed values, in reply order.

    Raises:
        ScpiParseError: If the field count differs from ``len(names)``, or
            a field is not a number. The error names the first bad field.
    """
    parts = text.split(",")
    if len(parts) != len(names):
        raise ScpiParseError(
            f"Expected {len(names)} comma-separated fields, got {len(parts)}: {text!r}",
            response=text,
        )
    values: list[float] = []
    for index, (name, part) in enumerate(zip(names, parts)):
        try:
            values.append(parse_number(part))
        except ScpiParseError:
            raise ScpiParseError(
                f"Field {index} ({name}) is not a number: {part!r}",
                response=text,
                field=name,
                index=index,
            ) from None
    return tuple(values)
