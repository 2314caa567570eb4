"""
Position service layer for ordered collections.

Combines the pure fractional indexing engine with a store adapter: it reads
the current boundaries of a collection, asks the engine for a new position,
and (for moves and rebalances) writes the result back.
"""

import logging
from typing import Any, Optional

import fractional_indexing
from database import CollectionRef, PositionStore
from position import Position

logger = logging.getLogger(__name__)


class ItemNotFound(LookupError):
    """Raised when an item id is not part of the collection."""

    def __init__(self, ref: CollectionRef, item_id):
        self.item_id = item_id
        super().__init__(f"Item {item_id!r} not found in {ref.describe()}")


class PositionService:
    """
    Service class for placing items in ordered collections.

    Concurrent inserts into the same gap are left to the caller's transaction
    discipline; the service only guarantees each result fits the bounds it read.
    """

    def __init__(self, store: Optional[PositionStore] = None):
        self.store = store or PositionStore()

    def next_position(self, ref: CollectionRef) -> Position:
        """Position for appending after the current last item (or the first one)."""
        last = self.store.fetch_boundary(ref, "max")
        if last is None:
            return fractional_indexing.first()
        return fractional_indexing.after(last)

    def prepend_position(self, ref: CollectionRef) -> Position:
        """Position for inserting before the current first item."""
        head = self.store.fetch_boundary(ref, "min")
        if head is None:
            return fractional_indexing.first()
        return fractional_indexing.before(head)

    def _require_position(self, ref: CollectionRef, item_id) -> Position:
        position = self.store.fetch_position(ref, item_id)
        if position is None:
            raise ItemNotFound(ref, item_id)
        return position

    def position_between_items(
        self,
        ref: CollectionRef,
        before_id: Any = None,
        after_id: Any = None,
    ) -> Position:
        """
        Position for an item placed right after ``before_id`` and right before ``after_id``.

        Either id may be None. Passing only one id places the new item directly
        next to it, reading the neighbour on the other side from the store.
        """
        low = self._require_position(ref, before_id) if before_id is not None else None
        high = self._require_position(ref, after_id) if after_id is not None else None

        if low is not None and high is None:
            high = self.store.fetch_neighbour(ref, low, "next")
        elif high is not None and low is None:
            low = self.store.fetch_neighbour(ref, high, "previous")
        elif low is None and high is None:
            return self.next_position(ref)

        return fractional_indexing.between(low, high)

    def move_item(
        self,
        ref: CollectionRef,
        item_id: Any,
        before_id: Any = None,
        after_id: Any = None,
    ) -> Position:
        """
        Move an item between two others and persist its new position.

        Returns:
            The item's new position

        Raises:
            ItemNotFound: If any of the ids is not in the collection
            ValueError: If the item is asked to move next to itself
        """
        if item_id is not None and item_id in (before_id, after_id):
            raise ValueError("An item cannot be moved relative to itself")
        self._require_position(ref, item_id)

        new_position = self.position_between_items(ref, before_id, after_id)
        if not self.store.update_position(ref, item_id, new_position):
            raise ItemNotFound(ref, item_id)

        logger.info(f"Moved item {item_id!r} in {ref.describe()} to {new_position}")
        return new_position

    def plan_rebalance(self, ref: CollectionRef):
        """Current and rebalanced (id, position) pairs, without writing anything."""
        current = self.store.fetch_ordered(ref)
        return current, fractional_indexing.rebalance(current)

    def rebalance_collection(self, ref: CollectionRef) -> int:
        """
        Rewrite every position of a collection as short, evenly spaced keys.

        The rows are read and rewritten in one locked transaction, so the
        plan always matches what is written.

        Returns:
            int: Number of rows rewritten
        """
        current, planned, updated = self.store.rebalance_locked(ref, fractional_indexing.rebalance)
        if not planned:
            logger.info(f"Nothing to rebalance in {ref.describe()}")
            return 0

        longest_before = max(len(position) for _, position in current)
        logger.info(
            f"Rebalanced {updated} rows in {ref.describe()} "
            f"(longest key {longest_before} -> {len(planned[0][1])})"
        )
        return updated

    def needs_rebalance(self, ref: CollectionRef, max_length: int) -> bool:
        """True if any position in the collection is longer than ``max_length``."""
        if max_length < 1:
            raise ValueError(f"max_length must be positive, got {max_length}")
        return any(len(position) > max_length for _, position in self.store.fetch_ordered(ref))
