"""Cost normalization for monetary values returned by the models.

Models frequently answer with strings such as "5万元", "10-20万" or
"120,000" instead of plain numbers. Everything is coerced to a float in
the base currency unit.
"""

import math
import re

_WAN = 10_000
_UNIT_RE = re.compile(r"[万元千]")
_RANGE_RE = re.compile(r"[-~～至到]\s*")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def normalize_cost(value) -> float:
    """Coerce a number or a human-written amount to a float.

    - numbers pass through (NaN becomes 0.0)
    - "a-b" ranges become their midpoint
    - the 万 unit multiplies by 10,000
    - anything unparseable becomes 0.0
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)
    if not isinstance(value, str):
        return 0.0

    multiplier = _WAN if "万" in value else 1
    cleaned = _UNIT_RE.sub("", value.replace(",", ""))
    cleaned = _RANGE_RE.sub(" ", cleaned).strip()

    numbers = [float(n) for n in _NUMBER_RE.findall(cleaned)]
    if not numbers:
        return 0.0
    if len(cleaned.split()) >= 2 and len(numbers) >= 2:
        return (numbers[0] + numbers[1]) / 2 * multiplier
    return numbers[0] * multiplier
