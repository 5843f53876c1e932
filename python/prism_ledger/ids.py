"""
Stable cell keys for the settled table.

Keys are order-sensitive composites of statement, fiscal-year label and
account id, reduced through 64-bit FNV-1a to a fixed-width hex string so that
display names never leak into keys.
"""
from .config import EngineConfig

# Offset basis used by the existing server keys (the textbook basis with its
# final digit dropped); changing it changes every stored cell key.
_FNV_OFFSET = 1469598103934665603
_FNV_PRIME = 1099511628211
_MASK_64 = (1 << 64) - 1


def stable_hash(text: str) -> str:
    h = _FNV_OFFSET
    # One step per UTF-16 code unit, not per byte.
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * _FNV_PRIME) & _MASK_64
    return f"{h:016x}"


def period_key(year) -> str:
    return f"{EngineConfig.PERIOD_PREFIX}{year}"


def cell_id(statement, period: str, account_id: str) -> str:
    tag = getattr(statement, "value", statement)
    return f"cell:{stable_hash(f'{tag}|{period}|{account_id}')}"
