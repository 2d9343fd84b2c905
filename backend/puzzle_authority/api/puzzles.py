from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from puzzle_authority.errors import PuzzleAuthorityError
from puzzle_authority.services.puzzles.validator import SubmissionStage, validate_submission


puzzles = Blueprint('puzzles', __name__)


@puzzles.route('/submit', methods=['POST'])
def submit_puzzle():
    data = request.get_json(silent=True)
    try:
        outcome = validate_submission(current_user, data)
    except PuzzleAuthorityError as exc:
        stage = exc.stage.value if exc.stage else None
        current_app.logger.info(f"[submit] {SubmissionStage.REJECTED.value} code={exc.code} after={stage}: {exc.message}")
        raise
    return jsonify(outcome.to_response())
