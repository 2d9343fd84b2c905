from flask import Blueprint, jsonify, request, current_app
from puzzle_authority.services.leaderboard.queries import DEFAULT_LIMIT, get_leaderboard


leaderboard = Blueprint('leaderboard', __name__)


@leaderboard.route('', methods=['GET'])
def get_leaderboard_entries():
    limit = request.args.get('limit', default=DEFAULT_LIMIT, type=int)
    category = request.args.get('category') or None
    entries = get_leaderboard(limit=limit, category=category)
    current_app.logger.info(f"[leaderboard] fetched category={category} limit={limit} results={len(entries)}")
    return jsonify({'entries': entries})
