from flask import Flask, jsonify
import os
import logging
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

# Import our custom modules
from api_routes import (
    first_position,
    position_after,
    position_before,
    position_between,
    rebalance_positions,
    collection_next_position,
    collection_move_item,
    collection_rebalance,
)

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()  # Log to stdout (captured by Gunicorn)
    ]
)

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Configure Flask to handle trailing slashes consistently
app.url_map.strict_slashes = False

# Register pure position routes
app.add_url_rule("/api/positions/first", "first_position", first_position)
app.add_url_rule("/api/positions/after/<position>", "position_after", position_after)
app.add_url_rule("/api/positions/before/<position>", "position_before", position_before)
app.add_url_rule("/api/positions/between", "position_between", position_between)
app.add_url_rule(
    "/api/positions/rebalance", "rebalance_positions", rebalance_positions, methods=["POST"]
)

# Register collection routes (these read and write the database)
app.add_url_rule(
    "/api/collections/next", "collection_next_position", collection_next_position, methods=["POST"]
)
app.add_url_rule(
    "/api/collections/move", "collection_move_item", collection_move_item, methods=["POST"]
)
app.add_url_rule(
    "/api/collections/rebalance", "collection_rebalance", collection_rebalance, methods=["POST"]
)


@app.errorhandler(404)
def not_found(error):  # pylint: disable=unused-argument
    return jsonify({"success": False, "error": "Not found"}), 404


@app.errorhandler(Exception)
def handle_exception(error):
    """Catch all other unhandled exceptions"""
    if isinstance(error, HTTPException):
        return jsonify({"success": False, "error": error.description}), error.code
    logger.exception(f"Unhandled exception: {error}")
    return jsonify({"success": False, "error": "An unexpected error occurred"}), 500


if __name__ == "__main__":
    app.run(port=5001, host="127.0.0.1")
