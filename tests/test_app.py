import threading

import pytest

from newsdash import create_app
from newsdash.cache import TTLCache
from newsdash.ga_client import DimensionInfo

from conftest import failing, row, sign_in

API_ENDPOINTS = [
    "/api/realtime",
    "/api/top-news",
    "/api/state-news/mp",
    "/api/top-authors",
    "/api/session-stats",
    "/api/ga4-dims",
]


@pytest.mark.parametrize("path", API_ENDPOINTS)
def test_api_requires_login(client, fake_ga, path):
    resp = client.get(path)
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Not authenticated"}
    assert fake_ga.calls == []


def test_injected_cache_is_used(app, cache, settings, fake_ga):
    assert app.extensions["newsdash_cache"] is cache

    empty = TTLCache()
    other = create_app(settings, cache=empty, client_factory=lambda c, s: fake_ga)
    assert other.extensions["newsdash_cache"] is empty


def test_concurrent_requests_share_one_cached_response(app, fake_ga):
    entered = threading.Semaphore(0)
    gate = threading.Event()

    def realtime(request):
        entered.release()
        assert gate.wait(timeout=5)
        return [row(["Home"], [3])]

    fake_ga.realtime = realtime
    statuses = []

    def fetch(barrier=None):
        client = sign_in(app.test_client())
        if barrier is not None:
            barrier.wait(timeout=5)
        resp = client.get("/api/top-news")
        statuses.append((resp.status_code, resp.get_json()))

    # two requests both miss while the first upstream call is still in flight
    racing = [threading.Thread(target=fetch) for _ in range(2)]
    for t in racing:
        t.start()
    for _ in racing:
        assert entered.acquire(timeout=5)
    gate.set()
    for t in racing:
        t.join(timeout=5)

    barrier = threading.Barrier(8)
    late = [threading.Thread(target=fetch, args=(barrier,)) for _ in range(8)]
    for t in late:
        t.start()
    for t in late:
        t.join(timeout=5)

    assert len(fake_ga.calls) <= 2
    assert len(statuses) == 10
    assert all(s == (200, [{"rank": 1, "title": "Home", "activeUsers": 3}]) for s in statuses)


def test_top_news_is_cached_until_ttl(auth_client, fake_ga, clock):
    fake_ga.realtime = lambda r: [row(["Home"], [3])]

    first = auth_client.get("/api/top-news")
    second = auth_client.get("/api/top-news")
    assert first.get_json() == second.get_json() == [{"rank": 1, "title": "Home", "activeUsers": 3}]
    assert len(fake_ga.calls) == 1

    clock.advance(10)
    auth_client.get("/api/top-news")
    assert len(fake_ga.calls) == 2


def test_state_news_cached_per_state(auth_client, fake_ga, clock):
    fake_ga.report = lambda r: [row(["Story", r.dimension_filter.values[0] + "x"], [7])]

    mp = auth_client.get("/api/state-news/MP").get_json()
    auth_client.get("/api/state-news/mp")
    cg = auth_client.get("/api/state-news/cg").get_json()

    assert mp[0]["path"] == "/mp/x"
    assert cg[0]["path"] == "/cg/x"
    assert len(fake_ga.calls) == 2

    clock.advance(299)
    auth_client.get("/api/state-news/mp")
    assert len(fake_ga.calls) == 2


def test_empty_author_list_is_cached(auth_client, fake_ga):
    assert auth_client.get("/api/top-authors").get_json() == []
    calls = len(fake_ga.calls)
    assert auth_client.get("/api/top-authors").get_json() == []
    assert len(fake_ga.calls) == calls


def test_realtime_payload_shape(auth_client, fake_ga):
    fake_ga.realtime = lambda r: [row(["0"], [5])] if r.dimensions else [row([], [21])]
    fake_ga.report = lambda r: [row([], [10, 100])] if "sessions" in r.metrics else [row([], ["0.4", "200"])]

    data = auth_client.get("/api/realtime").get_json()
    assert set(data) == {"activeUsers", "bounceRate", "avgDuration", "pageviewsPerMin", "newPerMin", "sparkline"}
    assert data["activeUsers"] == 21
    assert data["pageviewsPerMin"] == 5
    assert data["bounceRate"] == "40.0%"
    assert data["avgDuration"] == "3:20"
    assert len(data["sparkline"]) == 30


def test_upstream_failure_is_500_and_not_cached(auth_client, fake_ga):
    fake_ga.realtime = failing("401 Request had invalid authentication credentials.")

    resp = auth_client.get("/api/top-news")
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "401 Request had invalid authentication credentials."}

    fake_ga.realtime = lambda r: []
    resp = auth_client.get("/api/top-news")
    assert resp.status_code == 200
    assert resp.get_json() == []


def test_ga4_dims_lists_custom_dimensions(auth_client, fake_ga):
    fake_ga.metadata = [
        DimensionInfo("country", "Country"),
        DimensionInfo("customEvent:author", "Author", "Article byline"),
    ]
    resp = auth_client.get("/api/ga4-dims")
    assert resp.get_json() == [
        {"apiName": "customEvent:author", "uiName": "Author", "description": "Article byline"}
    ]


def test_me_reports_login_state(client, auth_client):
    data = auth_client.get("/auth/me").get_json()
    assert data == {"loggedIn": True, "name": "Desk Editor", "email": "desk@example.com", "photo": None}

    auth_client.get("/auth/logout")
    assert auth_client.get("/auth/me").get_json() == {"loggedIn": False}


def test_login_redirects_to_google(client):
    resp = client.get("/auth/google")
    assert resp.status_code == 302
    location = resp.headers["Location"]
    assert location.startswith("https://accounts.google.com/o/oauth2/auth")
    assert "analytics.readonly" in location
    assert "access_type=offline" in location
    assert "include_granted_scopes" not in location
    with client.session_transaction() as sess:
        assert sess["oauth_state"]


def test_callback_with_bad_state_redirects_with_error(client):
    with client.session_transaction() as sess:
        sess["oauth_state"] = "expected"
    resp = client.get("/auth/google/callback?code=abc&state=forged")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/?error=1")


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok", "property": "properties/123456789"}
