from flask import request, jsonify
import os
import logging
import psycopg2

import fractional_indexing
from base62 import PositionError
from database import CollectionRef
from services.position_service import PositionService, ItemNotFound

logger = logging.getLogger(__name__)


def _error(message, status=400):
    return jsonify({"success": False, "error": message}), status


def _allowed_tables():
    """Tables the collection endpoints may touch, from ORDERED_COLLECTION_TABLES."""
    configured = os.environ.get("ORDERED_COLLECTION_TABLES", "")
    return {name.strip() for name in configured.split(",") if name.strip()}


def _collection_ref_from_json(data):
    """
    Build a CollectionRef from a request body.

    Raises:
        ValueError: If required fields are missing or the table is not allowed
        PermissionError: If the table is not in ORDERED_COLLECTION_TABLES
    """
    table = data.get("table")
    if table not in _allowed_tables():
        raise PermissionError(f"Table '{table}' is not an ordered collection")
    return CollectionRef(
        table=table,
        position_column=data.get("position_column", "position"),
        id_column=data.get("id_column", "id"),
        partition_column=data.get("partition_column"),
        partition_value=data.get("partition_value"),
    )


def first_position():
    return jsonify({"success": True, "position": str(fractional_indexing.first())})


def position_after(position):
    try:
        result = fractional_indexing.after(position)
    except PositionError as e:
        return _error(str(e))
    return jsonify({"success": True, "position": str(result)})


def position_before(position):
    try:
        result = fractional_indexing.before(position)
    except PositionError as e:
        return _error(str(e))
    return jsonify({"success": True, "position": str(result)})


def position_between():
    """
    Position between the 'low' and 'high' query parameters.

    Either parameter may be omitted (or empty) to leave that side open.
    """
    low = request.args.get("low") or None
    high = request.args.get("high") or None
    try:
        result = fractional_indexing.between(low, high)
    except PositionError as e:
        return _error(str(e))
    return jsonify({"success": True, "position": str(result)})


def rebalance_positions():
    """
    Rebalance an ordered list sent by the client.

    Expects JSON: {"entries": [[id, position], ...]} already sorted by position.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
        return _error("Expected JSON body with an 'entries' list")

    entries = []
    for entry in data["entries"]:
        # each entry is [id, position], with the position as text
        if not isinstance(entry, list) or len(entry) != 2 or not isinstance(entry[1], str):
            return _error("Each entry must be an [id, position] pair")
        entries.append((entry[0], entry[1]))

    try:
        rebalanced = fractional_indexing.rebalance(entries)
    except PositionError as e:
        return _error(str(e))

    return jsonify(
        {
            "success": True,
            "entries": [[item_id, str(position)] for item_id, position in rebalanced],
        }
    )


def _collection_action(action):
    data = request.get_json(silent=True)
    if not data:
        return _error("No data provided")
    if not isinstance(data, dict):
        return _error("Expected a JSON object")

    try:
        ref = _collection_ref_from_json(data)
        return action(PositionService(), ref, data)
    except PermissionError as e:
        return _error(str(e), 403)
    except ItemNotFound as e:
        return _error(str(e), 404)
    except ValueError as e:
        # PositionError is a ValueError as well
        return _error(str(e))
    except psycopg2.Error as e:
        logger.error(f"Database error in collection endpoint: {e}")
        return _error("Database error", 500)


def collection_next_position():
    def action(service, ref, data):
        position = service.next_position(ref)
        return jsonify({"success": True, "position": str(position)})

    return _collection_action(action)


def collection_move_item():
    def action(service, ref, data):
        if data.get("item_id") is None:
            return _error("item_id is required")
        position = service.move_item(
            ref,
            data["item_id"],
            before_id=data.get("before_id"),
            after_id=data.get("after_id"),
        )
        return jsonify({"success": True, "item_id": data["item_id"], "position": str(position)})

    return _collection_action(action)


def collection_rebalance():
    def action(service, ref, data):
        updated = service.rebalance_collection(ref)
        return jsonify({"success": True, "updated": updated})

    return _collection_action(action)
