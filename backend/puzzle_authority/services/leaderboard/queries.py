from puzzle_authority.models import CategoryScore, PlayerProfile

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def clamp_limit(raw) -> int:
    """Integers are clamped to [1, MAX_LIMIT]; anything else means the default."""
    if isinstance(raw, bool) or not isinstance(raw, int):
        return DEFAULT_LIMIT
    return min(max(raw, 1), MAX_LIMIT)


def get_leaderboard(limit=DEFAULT_LIMIT, category=None, store=None):
    """Ranked entries by descending total score, globally or for one category."""
    if store is None:
        from puzzle_authority import store
    limit = clamp_limit(limit)
    category = category if isinstance(category, str) and category else None
    model = CategoryScore if category else PlayerProfile

    with store.session_scope() as session:
        query = session.query(model)
        if category:
            query = query.filter(CategoryScore.category == category)
        rows = query.order_by(model.total_score.desc(), model.uid.asc()).limit(limit).all()
        return [
            {
                'rank': index + 1,
                'uid': row.uid,
                'displayName': row.display_name or 'Anonymous',
                'totalScore': row.total_score or 0,
                'puzzlesSolved': row.puzzles_solved or 0,
            }
            for index, row in enumerate(rows)
        ]
