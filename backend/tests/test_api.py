import pytest
from sqlalchemy.exc import OperationalError

from puzzle_authority import store
from puzzle_authority.models import (
    LeaderboardCacheEntry,
    PlayerProfile,
    PuzzleSubmission,
    RateLimitWindow,
    SuspiciousActivity,
)
from puzzle_authority.services.puzzles import validator
from puzzle_authority.services.puzzles.audit import log_suspicious_activity

VALID = {
    'puzzleId': 'p1',
    'solved': True,
    'timeSpent': 8,
    'attempts': 1,
    'hintsUsed': 0,
    'score': 999,
    'difficulty': 2,
}


def register(client, username='alice', password='password'):
    res = client.post('/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    return res.get_json()['user']


def submit(client, **overrides):
    payload = dict(VALID)
    payload.update(overrides)
    return client.post('/api/puzzles/submit', json=payload)


def rows(model, **filters):
    with store.session_scope() as session:
        return session.query(model).filter_by(**filters).all()


def test_accepted_submission_awards_server_score(client):
    user = register(client)
    res = submit(client)
    assert res.status_code == 200
    assert res.get_json() == {'success': True, 'serverScore': 96, 'antiCheatPassed': True}

    profile = store.repository(PlayerProfile).get(user['uid'])
    assert (profile.total_score, profile.puzzles_solved, profile.current_streak, profile.best_streak) == (96, 1, 1, 1)
    assert profile.display_name == 'alice'

    [record] = rows(PuzzleSubmission, uid=user['uid'])
    assert record.server_score == 96
    assert record.client_score == 999
    assert record.client_score_matched is False

    [entry] = rows(LeaderboardCacheEntry)
    assert (entry.uid, entry.score) == (user['uid'], 96)


def test_matching_client_score_is_recorded(client):
    user = register(client)
    assert submit(client, score=96).status_code == 200
    [record] = rows(PuzzleSubmission, uid=user['uid'])
    assert record.client_score_matched is True


def test_unauthenticated_submission_is_rejected_without_writes(client):
    res = submit(client)
    assert res.status_code == 401
    assert res.get_json()['code'] == 'unauthenticated'
    assert rows(RateLimitWindow) == []
    assert rows(PuzzleSubmission) == []


@pytest.mark.parametrize('overrides, message', [
    ({'puzzleId': ''}, 'puzzleId must be a non-empty string.'),
    ({'puzzleId': 7}, 'puzzleId must be a non-empty string.'),
    ({'solved': 'yes'}, 'solved must be a boolean.'),
    ({'timeSpent': -1}, 'timeSpent must be a number >= 0.'),
    ({'timeSpent': '8'}, 'timeSpent must be a number >= 0.'),
    ({'attempts': 0}, 'attempts must be an integer >= 1.'),
    ({'attempts': 1.5}, 'attempts must be an integer >= 1.'),
    ({'hintsUsed': -1}, 'hintsUsed must be an integer >= 0.'),
    ({'score': None}, 'score must be a number.'),
    ({'difficulty': 6}, 'difficulty must be an integer between 1 and 5.'),
    ({'difficulty': True}, 'difficulty must be an integer between 1 and 5.'),
    ({'category': 'cooking'}, 'category must be one of: console, navigation, audio, visual, meta.'),
    ({'submissionId': ''}, 'submissionId must be a non-empty string of at most 128 characters.'),
    ({'metadata': [1, 2]}, 'metadata must be an object.'),
    ({'timeSpent': 10**400}, 'timeSpent must be a number >= 0.'),
    ({'score': -10**400}, 'score must be a number.'),
    ({'attempts': 10**400}, 'attempts must be an integer >= 1.'),
    ({'attempts': 10**20}, 'attempts must be an integer <= 2147483647.'),
    ({'hintsUsed': 10**20}, 'hintsUsed must be an integer <= 2147483647.'),
])
def test_invalid_fields_are_rejected(client, overrides, message):
    register(client)
    res = submit(client, **overrides)
    assert res.status_code == 400
    assert res.get_json() == {'error': message, 'code': 'invalid-argument'}
    assert rows(RateLimitWindow) == []


def test_first_invalid_field_is_reported(client):
    register(client)
    res = submit(client, solved='no', difficulty=9)
    assert res.get_json()['error'] == 'solved must be a boolean.'


def test_missing_body_is_invalid(client):
    register(client)
    res = client.post('/api/puzzles/submit', data='not json', content_type='text/plain')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid-argument'


def test_eleventh_submission_in_a_minute_is_rate_limited(client):
    user = register(client)
    for _ in range(10):
        assert submit(client).status_code == 200
    res = submit(client)
    assert res.status_code == 429
    assert res.get_json()['code'] == 'resource-exhausted'
    assert store.repository(PlayerProfile).get(user['uid']).total_score == 960


def test_too_fast_solve_is_rejected_and_audited(client):
    user = register(client)
    res = submit(client, timeSpent=1)
    assert res.status_code == 403
    assert res.get_json() == {'error': 'Submission rejected by anti-cheat system.', 'code': 'permission-denied'}

    [activity] = rows(SuspiciousActivity, uid=user['uid'])
    record = activity.to_dict()
    assert record['reason'] == 'Anti-cheat check failed'
    assert record['reviewed'] is False
    assert record['details']['clientScore'] == 999
    assert [flag['kind'] for flag in record['details']['flags']] == ['too_fast']

    assert store.repository(PlayerProfile).get(user['uid']) is None
    assert rows(PuzzleSubmission) == []
    assert rows(LeaderboardCacheEntry) == []


def test_failed_audit_write_keeps_the_rejection(client, monkeypatch):
    user = register(client)
    audit_results = []

    def recording_audit(*args, **kwargs):
        audit_results.append(log_suspicious_activity(*args, **kwargs))
        return audit_results[-1]

    def broken_session_scope():
        raise OperationalError('INSERT INTO suspicious_activity', {}, Exception('database is locked'))

    monkeypatch.setattr(validator, 'log_suspicious_activity', recording_audit)
    monkeypatch.setattr(store, 'session_scope', broken_session_scope)
    res = submit(client, timeSpent=1)
    monkeypatch.undo()

    assert res.status_code == 403
    assert res.get_json()['code'] == 'permission-denied'
    assert audit_results == [False]
    assert rows(SuspiciousActivity) == []
    assert store.repository(PlayerProfile).get(user['uid']) is None


def test_huge_finite_time_earns_no_time_bonus(client):
    user = register(client)
    res = submit(client, timeSpent=10**20, score=50)
    assert res.status_code == 200
    assert res.get_json()['serverScore'] == 50
    [record] = rows(PuzzleSubmission, uid=user['uid'])
    assert record.time_spent == 1e20
    assert record.client_score_matched is True


def test_duplicate_submission_id_is_acknowledged_once(client):
    user = register(client)
    first = submit(client, submissionId='run-42').get_json()
    again = submit(client, submissionId='run-42').get_json()
    assert 'duplicate' not in first
    assert again == {'success': True, 'serverScore': 96, 'antiCheatPassed': True, 'duplicate': True}
    assert store.repository(PlayerProfile).get(user['uid']).total_score == 96


def test_leaderboard_ranks_by_total_score(client):
    alice = register(client, 'alice')
    submit(client)
    bob = register(client, 'bob')
    submit(client)
    submit(client)

    entries = client.get('/api/leaderboard').get_json()['entries']
    assert entries == [
        {'rank': 1, 'uid': bob['uid'], 'displayName': 'bob', 'totalScore': 192, 'puzzlesSolved': 2},
        {'rank': 2, 'uid': alice['uid'], 'displayName': 'alice', 'totalScore': 96, 'puzzlesSolved': 1},
    ]


def test_leaderboard_limit_is_clamped(client):
    register(client, 'alice')
    submit(client)
    register(client, 'bob')
    submit(client)

    assert len(client.get('/api/leaderboard?limit=0').get_json()['entries']) == 1
    assert len(client.get('/api/leaderboard?limit=500').get_json()['entries']) == 2
    assert len(client.get('/api/leaderboard?limit=abc').get_json()['entries']) == 2


def test_leaderboard_by_category(client):
    alice = register(client, 'alice')
    submit(client, category='audio')
    register(client, 'bob')
    submit(client, category='console')

    entries = client.get('/api/leaderboard?category=audio').get_json()['entries']
    assert [(e['uid'], e['totalScore']) for e in entries] == [(alice['uid'], 96)]
    assert client.get('/api/leaderboard?category=visual').get_json()['entries'] == []


def test_login_check_and_logout(client, make_user):
    make_user('carol', 'secret')
    assert client.get('/check_login').status_code == 401

    res = client.post('/login', json={'username': 'carol', 'password': 'wrong'})
    assert res.status_code == 401

    res = client.post('/login', json={'username': 'carol', 'password': 'secret'})
    assert res.status_code == 200
    assert client.get('/check_login').get_json()['user']['username'] == 'carol'

    assert client.post('/logout').get_json() == {'success': True}
    assert submit(client).status_code == 401


def test_duplicate_username_is_rejected(client):
    register(client, 'alice')
    res = client.post('/register', json={'username': 'alice', 'password': 'other'})
    assert res.status_code == 400
    assert res.get_json()['success'] is False
