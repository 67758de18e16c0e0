"""
Stable string hash for deterministic content selection.

Python's built-in hash() is salted per process, so it cannot pick the same
template for a report twice. This is the classic 31-polynomial rolling hash
over UTF-16 code units, wrapped to a signed 32-bit integer after every step,
then made non-negative:

    h = 0
    for each code unit c:  h = int32(h * 31 + c)
    return abs(h)

It matches `((h << 5) - h) + c | 0` in JavaScript and Java's String.hashCode,
so stored selections agree across implementations.
"""

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _code_units(text: str):
    """UTF-16 code units of text (astral characters become surrogate pairs)."""
    data = text.encode('utf-16-le', 'surrogatepass')
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def to_int32(value: int) -> int:
    """Wrap an integer to the signed 32-bit range."""
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def stable_hash(text: str) -> int:
    """Non-negative 32-bit polynomial hash of text."""
    h = 0
    for unit in _code_units(text or ""):
        h = to_int32(h * 31 + unit)
    return abs(h)
