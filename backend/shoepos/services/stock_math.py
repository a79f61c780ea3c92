# Overview: Pure on-hand arithmetic over stock ledger entries (no database access).

"""
On-hand calculator.

Every function here accepts any iterable of objects exposing
``variant_id``, ``quantity_change`` and ``type`` (ORM rows, the
LedgerFact tuple below, or test doubles). Summation is commutative, so
input order never matters.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, NamedTuple


INITIAL_COUNT = "INITIAL_COUNT"


class LedgerFact(NamedTuple):
    variant_id: int
    quantity_change: int
    type: str


@dataclass
class OnHandState:
    on_hand: int = 0
    has_initial_count: bool = False


def calculate_variant_on_hand(entries: Iterable) -> OnHandState:
    """Sum quantity changes and note whether a baseline count exists. Empty -> (0, False)."""
    state = OnHandState()
    for entry in entries:
        state.on_hand += entry.quantity_change
        if entry.type == INITIAL_COUNT:
            state.has_initial_count = True
    return state


def summarize_ledger_by_variant(entries: Iterable) -> dict[int, OnHandState]:
    summary: dict[int, OnHandState] = {}
    for entry in entries:
        state = summary.setdefault(entry.variant_id, OnHandState())
        state.on_hand += entry.quantity_change
        if entry.type == INITIAL_COUNT:
            state.has_initial_count = True
    return summary


def has_duplicate_initial_counts(entries: Iterable) -> bool:
    """
    True when any variant carries more than one INITIAL_COUNT entry.

    This is a data-integrity violation (the baseline must be unique); the
    check exists so reconciliation can refuse to build on corrupt history.
    """
    counts = Counter(entry.variant_id for entry in entries if entry.type == INITIAL_COUNT)
    return any(count > 1 for count in counts.values())
