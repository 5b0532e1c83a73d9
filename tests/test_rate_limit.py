"""Fixed-window rate limiting."""

from countylocal.rate_limit import InMemoryRateLimiter, RateLimit, get_client_identifier

LIMIT = RateLimit(max_requests=2, window_seconds=60)


def test_allows_until_limit_then_blocks():
    limiter = InMemoryRateLimiter()

    assert limiter.check('issue:1.2.3.4', LIMIT, now=100) == (True, 1, 160)
    assert limiter.check('issue:1.2.3.4', LIMIT, now=110) == (True, 0, 160)
    assert limiter.check('issue:1.2.3.4', LIMIT, now=120) == (False, 0, 160)


def test_window_resets():
    limiter = InMemoryRateLimiter()
    limiter.check('k', LIMIT, now=0)
    limiter.check('k', LIMIT, now=1)
    assert limiter.check('k', LIMIT, now=59)[0] is False

    allowed, remaining, reset_at = limiter.check('k', LIMIT, now=60)
    assert allowed is True
    assert remaining == 1
    assert reset_at == 120


def test_keys_are_independent():
    limiter = InMemoryRateLimiter()
    limiter.check('a', LIMIT, now=0)
    limiter.check('a', LIMIT, now=0)

    assert limiter.check('a', LIMIT, now=1)[0] is False
    assert limiter.check('b', LIMIT, now=1)[0] is True


def test_clear():
    limiter = InMemoryRateLimiter()
    limiter.check('a', LIMIT, now=0)
    limiter.check('a', LIMIT, now=0)
    limiter.clear()

    assert limiter.check('a', LIMIT, now=1)[0] is True


def test_client_identifier():
    assert get_client_identifier({'X-Forwarded-For': '203.0.113.5, 10.0.0.1'}) == '203.0.113.5'
    assert get_client_identifier({'X-Real-IP': ' 198.51.100.2 '}) == '198.51.100.2'
    assert get_client_identifier({'X-Forwarded-For': ' ', 'X-Real-IP': '198.51.100.2'}) == '198.51.100.2'
    assert get_client_identifier({}) == 'unknown'


def test_scanner_endpoint_uses_default_bucket(client):
    headers = {'X-Forwarded-For': '192.0.2.44'}
    for _ in range(30):
        response = client.post('/api/vendor/redeem', headers=headers, json={})
        assert response.status_code == 400

    limited = client.post('/api/vendor/redeem', headers=headers, json={})
    assert limited.status_code == 429
    assert limited.get_json()['error'] == 'Too many requests'
    assert limited.headers['X-RateLimit-Remaining'] == '0'
