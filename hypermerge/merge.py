"""
Pairwise merge of two ascending arrays.

Ties are broken in favour of the first array, so equal items from `a`
always land before equal items from `b`.
"""

import numpy as np


def is_sorted(items):
    items = np.asarray(items)
    return bool(np.all(items[:-1] <= items[1:]))


def merge_slots(a, b):
    """Return the output index of every item of `a` and of `b` in their merge."""
    # Each item's final slot is its own index plus the number of items from
    # the other side that precede it: strictly smaller ones for a, smaller
    # or equal ones for b.
    a_slots = np.arange(len(a)) + np.searchsorted(b, a, side="left")
    b_slots = np.arange(len(b)) + np.searchsorted(a, b, side="right")
    return a_slots, b_slots


def merge_into(a, b, out):
    """
    Merge sorted `a` and `b` into the scratch buffer `out`.

    `out` must hold at least len(a) + len(b) items; only that prefix is
    written and the filled view is returned.
    """
    a_size = len(a)
    b_size = len(b)
    total = a_size + b_size
    if len(out) < total:
        raise ValueError(f"scratch buffer holds {len(out)} items, need {total}")

    merged = out[:total]
    if b_size == 0:
        merged[:] = a
        return merged
    if a_size == 0:
        merged[:] = b
        return merged

    a_slots, b_slots = merge_slots(a, b)
    merged[a_slots] = a
    merged[b_slots] = b
    return merged


def merge_sorted(a, b, dtype=None):
    a = np.asarray(a, dtype=dtype)
    b = np.asarray(b, dtype=dtype if dtype is not None else a.dtype)
    out = np.empty(len(a) + len(b), dtype=np.result_type(a, b))
    return merge_into(a, b, out)
