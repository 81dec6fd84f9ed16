"""
HTTP API server for Bid Tracker.

A Flask server exposing the admin back end as JSON endpoints:
1. Auctions, bids and settings CRUD (stored in Supabase)
2. Dashboard statistics
3. Facebook bid detection preview and auto-sync
"""

import logging
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import get_facebook_config, get_supabase_config
from .db import get_db
from .pipeline import (
    AuctionNotFoundError,
    BidTooLowError,
    SyncConflictError,
    check_message,
    detect_bids,
    place_manual_bid,
    sync_auction_bids,
)
from .sources import CommentFetchError, validate_access_token
from .stats import get_dashboard_stats

logger = logging.getLogger(__name__)

app = Flask(__name__)

AUCTION_REQUIRED_FIELDS = ("title", "description", "group_name", "start_time", "end_time")
BID_REQUIRED_FIELDS = ("auction_id", "bidder_name", "amount")
DEFAULT_TEST_MESSAGE = "I bid $150 for this item"


def _error(message: str, status: int):
    return jsonify({"error": message}), status


@app.errorhandler(Exception)
def handle_unexpected_error(error):
    """Log unexpected failures and answer with a JSON 500."""
    if isinstance(error, HTTPException):
        return _error(error.description, error.code)

    logger.exception(f"Unhandled error on {request.method} {request.path}: {error}")
    return _error("Internal server error", 500)


@app.route("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# =============================================================================
# AUCTIONS
# =============================================================================

@app.route("/api/auctions", methods=["GET"])
def list_auctions():
    auctions = get_db().list_auctions(
        status=request.args.get("status"),
        search=request.args.get("search"),
    )
    return jsonify([auction.to_dict() for auction in auctions])


@app.route("/api/auctions", methods=["POST"])
def create_auction():
    body = request.get_json(silent=True) or {}

    if any(not body.get(name) for name in AUCTION_REQUIRED_FIELDS):
        return _error("Missing required fields", 400)

    auction = get_db().create_auction(body)
    return jsonify(auction.to_dict()), 201


@app.route("/api/auctions/<auction_id>", methods=["GET"])
def get_auction(auction_id: str):
    db = get_db()
    auction = db.get_auction(auction_id)
    if auction is None:
        return _error("Auction not found", 404)

    bids = db.list_bids(auction_id=auction_id)
    return jsonify({
        "auction": auction.to_dict(),
        "bids": [bid.to_dict() for bid in bids],
    })


@app.route("/api/auctions/<auction_id>", methods=["PUT"])
def update_auction(auction_id: str):
    body = request.get_json(silent=True) or {}

    auction = get_db().update_auction(auction_id, body)
    if auction is None:
        return _error("Auction not found", 404)

    return jsonify(auction.to_dict())


@app.route("/api/auctions/<auction_id>", methods=["DELETE"])
def delete_auction(auction_id: str):
    if not get_db().delete_auction(auction_id):
        return _error("Auction not found", 404)

    return jsonify({"message": "Auction deleted successfully"})


# =============================================================================
# BIDS
# =============================================================================

@app.route("/api/bids", methods=["GET"])
def list_bids():
    bids = get_db().list_bids(auction_id=request.args.get("auction_id"))
    return jsonify([bid.to_dict() for bid in bids])


@app.route("/api/bids", methods=["POST"])
def create_bid():
    body = request.get_json(silent=True) or {}

    if any(not body.get(name) for name in BID_REQUIRED_FIELDS):
        return _error("Missing required fields", 400)

    try:
        amount = float(body["amount"])
    except (TypeError, ValueError):
        return _error("Amount must be a number", 400)

    try:
        bid = place_manual_bid(
            auction_id=body["auction_id"],
            bidder_name=body["bidder_name"],
            amount=amount,
            bidder_id=body.get("bidder_id"),
            notes=body.get("notes"),
        )
    except AuctionNotFoundError:
        return _error("Auction not found", 404)
    except BidTooLowError as e:
        return _error(str(e), 400)
    except SyncConflictError as e:
        return _error(str(e), 409)

    return jsonify(bid.to_dict()), 201


# =============================================================================
# SETTINGS & DASHBOARD
# =============================================================================

@app.route("/api/settings", methods=["GET"])
def get_settings():
    return jsonify(get_db().get_settings().to_dict())


@app.route("/api/settings", methods=["PUT"])
def update_settings():
    body = request.get_json(silent=True) or {}

    try:
        settings = get_db().update_settings(body)
    except ValueError as e:
        return _error(str(e), 400)

    return jsonify(settings.to_dict())


@app.route("/api/dashboard", methods=["GET"])
def dashboard():
    return jsonify(get_dashboard_stats().to_dict())


# =============================================================================
# FACEBOOK
# =============================================================================

@app.route("/api/facebook/parse-comments", methods=["GET"])
def test_parse_message():
    """Diagnostic: run bid detection on ?message=..."""
    message = request.args.get("message") or DEFAULT_TEST_MESSAGE
    return jsonify(check_message(message))


@app.route("/api/facebook/parse-comments", methods=["POST"])
def parse_comments():
    """Preview the bids in a post's comments without storing them."""
    body = request.get_json(silent=True) or {}
    post_url = body.get("post_url")
    auction_id = body.get("auction_id")

    if not post_url or not auction_id:
        return _error("Missing post_url or auction_id", 400)

    try:
        result = detect_bids(post_url)
    except ValueError:
        return _error("Invalid Facebook post URL", 400)

    return jsonify({"success": True, "auction_id": auction_id, **result})


@app.route("/api/facebook/auto-sync", methods=["POST"])
def auto_sync():
    """Fetch, reconcile and store the bids of an auction's post."""
    body = request.get_json(silent=True) or {}
    auction_id = body.get("auction_id")

    if not auction_id:
        return _error("Missing auction_id", 400)

    try:
        result = sync_auction_bids(auction_id)
    except AuctionNotFoundError:
        return _error("Auction not found", 404)
    except ValueError as e:
        return _error(str(e), 400)
    except CommentFetchError as e:
        logger.error(f"Could not fetch comments for auction {auction_id}: {e}")
        return _error("Failed to fetch Facebook comments", 502)
    except SyncConflictError as e:
        return _error(str(e), 409)

    return jsonify(result)


@app.route("/api/test-env", methods=["GET"])
def test_env():
    """Report which integrations are configured."""
    supabase = get_supabase_config()
    facebook = get_facebook_config()

    return jsonify({
        "supabase_configured": bool(supabase.url and supabase.key),
        "facebook_token_configured": facebook.has_token,
        "facebook_token_valid": facebook.has_token and validate_access_token(facebook.access_token, facebook),
        "facebook_api_version": facebook.api_version,
    })


def run_server(host: str = "0.0.0.0", port: int = 5000, debug: bool = False):
    """Run the Flask server."""
    app.run(host=host, port=port, debug=debug)


def main():
    """CLI entry point for the API server."""
    import argparse

    parser = argparse.ArgumentParser(description="Bid Tracker API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5000, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )

    logger.info(f"Starting API server on {args.host}:{args.port}")
    run_server(args.host, args.port, args.debug)


if __name__ == "__main__":
    main()
