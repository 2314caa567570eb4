"""
Test configuration and fixtures for the position service test suite.

This file contains shared fixtures and configuration for all tests.
"""

import os
import sys
import pytest
from unittest.mock import MagicMock

# Add project root to Python path so we can import app modules
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Set test environment before importing app
os.environ["FLASK_ENV"] = "testing"
os.environ["PGHOST"] = "localhost"
os.environ["PGDATABASE"] = "positions_test"
os.environ["PGUSER"] = "test_user"
os.environ["PGPASSWORD"] = "test_password"
os.environ["PGPORT"] = "5432"
os.environ["ORDERED_COLLECTION_TABLES"] = "playlist_item,public.task"

from app import app
from database import CollectionRef
from position import Position


@pytest.fixture
def client():
    """Create a test client for the Flask application."""
    app.config["TESTING"] = True

    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture
def mock_db_connection():
    """Mock connection factory, connection and cursor for store tests."""
    mock_connection = MagicMock()
    mock_cursor = MagicMock()
    mock_connection.cursor.return_value = mock_cursor
    factory = MagicMock(return_value=mock_connection)

    yield {
        "connection": mock_connection,
        "cursor": mock_cursor,
        "factory": factory,
    }


@pytest.fixture
def playlist_ref():
    """A partitioned collection: the items of playlist 7."""
    return CollectionRef(
        table="playlist_item",
        position_column="position",
        id_column="playlist_item_id",
        partition_column="playlist_id",
        partition_value=7,
    )


@pytest.fixture
def task_ref():
    """An unpartitioned collection in a schema-qualified table."""
    return CollectionRef(table="public.task", position_column="rank", id_column="task_id")


@pytest.fixture
def mock_store():
    """Store adapter double with an empty collection by default."""
    store = MagicMock()
    store.fetch_boundary.return_value = None
    store.fetch_position.return_value = None
    store.fetch_neighbour.return_value = None
    store.fetch_ordered.return_value = []
    store.update_position.return_value = True

    def rebalance_locked(ref, planner):
        current = store.fetch_ordered.return_value
        planned = planner(current)
        return current, planned, len(planned)

    store.rebalance_locked.side_effect = rebalance_locked
    return store


@pytest.fixture
def skewed_entries():
    """An ordered collection whose keys grew from repeated appends."""
    texts = ["V", "k", "s", "w", "y", "z", "zV", "zk", "zzV"]
    return [(index + 1, Position.parse(text)) for index, text in enumerate(texts)]
