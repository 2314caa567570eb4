"""
Unit tests for PositionService.

Tests collection-level placement and rebalancing with a mocked store adapter.
"""

import pytest
import fractional_indexing
from position import Position
from services.position_service import ItemNotFound, PositionService


def P(text):
    return Position.parse(text)


class TestNextAndPrepend:
    """Tests for positions at the ends of a collection."""

    def test_next_position_empty_collection(self, mock_store, playlist_ref):
        service = PositionService(mock_store)

        assert service.next_position(playlist_ref) == P("V")
        mock_store.fetch_boundary.assert_called_once_with(playlist_ref, "max")

    def test_next_position_after_max(self, mock_store, playlist_ref):
        mock_store.fetch_boundary.return_value = P("V")
        service = PositionService(mock_store)

        assert service.next_position(playlist_ref) == P("k")

    def test_prepend_position_empty_collection(self, mock_store, playlist_ref):
        service = PositionService(mock_store)

        assert service.prepend_position(playlist_ref) == P("V")
        mock_store.fetch_boundary.assert_called_once_with(playlist_ref, "min")

    def test_prepend_position_before_min(self, mock_store, playlist_ref):
        mock_store.fetch_boundary.return_value = P("V")
        service = PositionService(mock_store)

        assert service.prepend_position(playlist_ref) == P("F")


class TestPositionBetweenItems:
    """Tests for position_between_items."""

    def test_between_two_items(self, mock_store, playlist_ref):
        mock_store.fetch_position.side_effect = lambda ref, item_id: {1: P("A"), 2: P("Z")}[item_id]
        service = PositionService(mock_store)

        assert service.position_between_items(playlist_ref, 1, 2) == P("M")
        mock_store.fetch_neighbour.assert_not_called()

    def test_after_item_reads_next_neighbour(self, mock_store, playlist_ref):
        mock_store.fetch_position.return_value = P("V")
        mock_store.fetch_neighbour.return_value = P("W")
        service = PositionService(mock_store)

        assert service.position_between_items(playlist_ref, before_id=1) == P("VV")
        mock_store.fetch_neighbour.assert_called_once_with(playlist_ref, P("V"), "next")

    def test_after_last_item(self, mock_store, playlist_ref):
        mock_store.fetch_position.return_value = P("V")
        service = PositionService(mock_store)

        assert service.position_between_items(playlist_ref, before_id=1) == P("k")

    def test_before_item_reads_previous_neighbour(self, mock_store, playlist_ref):
        mock_store.fetch_position.return_value = P("V")
        service = PositionService(mock_store)

        assert service.position_between_items(playlist_ref, after_id=1) == P("F")
        mock_store.fetch_neighbour.assert_called_once_with(playlist_ref, P("V"), "previous")

    def test_no_ids_appends(self, mock_store, playlist_ref):
        mock_store.fetch_boundary.return_value = P("k")
        service = PositionService(mock_store)

        assert service.position_between_items(playlist_ref) == P("s")

    def test_unknown_item(self, mock_store, playlist_ref):
        service = PositionService(mock_store)

        with pytest.raises(ItemNotFound) as exc_info:
            service.position_between_items(playlist_ref, before_id=99)
        assert exc_info.value.item_id == 99


class TestMoveItem:
    """Tests for move_item."""

    def test_move_persists_new_position(self, mock_store, playlist_ref):
        positions = {1: P("G"), 2: P("V"), 3: P("k")}
        mock_store.fetch_position.side_effect = lambda ref, item_id: positions.get(item_id)
        service = PositionService(mock_store)

        # Move item 3 between items 1 and 2
        result = service.move_item(playlist_ref, 3, before_id=1, after_id=2)

        assert P("G") < result < P("V")
        mock_store.update_position.assert_called_once_with(playlist_ref, 3, result)

    def test_move_unknown_item(self, mock_store, playlist_ref):
        service = PositionService(mock_store)

        with pytest.raises(ItemNotFound):
            service.move_item(playlist_ref, 3, before_id=1)
        mock_store.update_position.assert_not_called()

    def test_move_relative_to_itself(self, mock_store, playlist_ref):
        service = PositionService(mock_store)

        with pytest.raises(ValueError):
            service.move_item(playlist_ref, 3, before_id=3)

    def test_move_row_vanished(self, mock_store, playlist_ref):
        mock_store.fetch_position.return_value = P("V")
        mock_store.update_position.return_value = False
        service = PositionService(mock_store)

        with pytest.raises(ItemNotFound):
            service.move_item(playlist_ref, 3, before_id=1)


class TestRebalanceCollection:
    """Tests for rebalance_collection and needs_rebalance."""

    def test_rebalance_writes_all_rows(self, mock_store, playlist_ref, skewed_entries):
        mock_store.fetch_ordered.return_value = skewed_entries
        service = PositionService(mock_store)

        updated = service.rebalance_collection(playlist_ref)

        assert updated == len(skewed_entries)
        ref, planner = mock_store.rebalance_locked.call_args[0]
        assert ref is playlist_ref
        assert planner is fractional_indexing.rebalance
        written = planner(skewed_entries)
        assert [item_id for item_id, _ in written] == [item_id for item_id, _ in skewed_entries]
        new_positions = [position for _, position in written]
        assert new_positions == sorted(new_positions)
        assert all(len(position) == 1 for position in new_positions)

    def test_rebalance_reads_inside_the_write(self, mock_store, playlist_ref, skewed_entries):
        """The rows are read by the locked store call, not by a separate fetch."""
        mock_store.fetch_ordered.return_value = skewed_entries
        service = PositionService(mock_store)

        service.rebalance_collection(playlist_ref)

        mock_store.rebalance_locked.assert_called_once()
        mock_store.fetch_ordered.assert_not_called()
        mock_store.apply_positions.assert_not_called()

    def test_rebalance_empty_collection(self, mock_store, playlist_ref):
        service = PositionService(mock_store)

        assert service.rebalance_collection(playlist_ref) == 0
        mock_store.rebalance_locked.assert_called_once()

    def test_plan_rebalance_does_not_write(self, mock_store, playlist_ref, skewed_entries):
        mock_store.fetch_ordered.return_value = skewed_entries
        service = PositionService(mock_store)

        current, planned = service.plan_rebalance(playlist_ref)

        assert current == skewed_entries
        assert len(planned) == len(skewed_entries)
        mock_store.rebalance_locked.assert_not_called()
        mock_store.apply_positions.assert_not_called()

    def test_needs_rebalance(self, mock_store, playlist_ref, skewed_entries):
        mock_store.fetch_ordered.return_value = skewed_entries
        service = PositionService(mock_store)

        assert service.needs_rebalance(playlist_ref, 2) is True
        assert service.needs_rebalance(playlist_ref, 3) is False

    def test_needs_rebalance_rejects_zero(self, mock_store, playlist_ref):
        service = PositionService(mock_store)
        with pytest.raises(ValueError):
            service.needs_rebalance(playlist_ref, 0)
