"""
Order number sequence.

Order numbers are human-facing (printed on receipts, called out to the
kitchen) and must never repeat on this device. The counter is persisted in
the entity store under ORDER_SEQUENCE and only moves forward.
"""

from __future__ import annotations

from .entity_store import EntityStore, ORDER_SEQUENCE


class SequenceGenerator:
    """Persisted, strictly increasing order number source."""

    def __init__(self, store: EntityStore, counter_name: str = ORDER_SEQUENCE):
        self._store = store
        self._counter_name = counter_name

    def peek_next(self) -> int:
        """Number the next order will get. Does not consume it."""
        return self._store.get_counter(self._counter_name)

    def commit_next(self) -> int:
        """
        Consume and return the next number.

        Runs inside a store batch, so when called from an enclosing batch the
        increment is only persisted together with the rest of that batch.
        """
        with self._store.batch():
            current = self._store.get_counter(self._counter_name)
            self._store.put_counter(self._counter_name, current + 1)
        return current
