"""Shared pytest fixtures: fake GA4 client, app and signed-in test client."""

import pytest

from newsdash import create_app
from newsdash.cache import TTLCache
from newsdash.config import Settings
from newsdash.ga_client import ReportRow, UpstreamError


def row(dims, metrics):
    return ReportRow(dimension_values=list(dims), metric_values=[str(m) for m in metrics])


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeReportClient:
    """Stands in for ReportClient; answers from callables keyed on the request."""

    def __init__(self, report=None, realtime=None, metadata=None):
        self.report = report or (lambda request: [])
        self.realtime = realtime or (lambda request: [])
        self.metadata = metadata or []
        self.calls = []

    def run_report(self, request):
        self.calls.append(("report", request))
        return self.report(request)

    def run_realtime_report(self, request):
        self.calls.append(("realtime", request))
        return self.realtime(request)

    def get_metadata(self):
        self.calls.append(("metadata", None))
        if isinstance(self.metadata, Exception):
            raise self.metadata
        return list(self.metadata)

    def custom_dimensions(self):
        return [d for d in self.get_metadata() if d.is_custom]


def failing(message):
    def handler(request):
        raise UpstreamError(message)

    return handler


@pytest.fixture()
def settings():
    return Settings(
        google_client_id="client-id",
        google_client_secret="client-secret",
        base_url="http://localhost:3000",
        property_id="123456789",
        session_secret="test-secret",
        realtime_ttl=10,
        report_ttl=300,
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def fake_ga():
    return FakeReportClient()


@pytest.fixture()
def cache(settings, clock):
    return TTLCache(default_ttl=settings.realtime_ttl, clock=clock)


@pytest.fixture()
def app(settings, cache, fake_ga):
    app = create_app(
        settings,
        cache=cache,
        client_factory=lambda credential, settings: fake_ga,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def sign_in(client):
    with client.session_transaction() as sess:
        sess["credential"] = {"access_token": "ya29.token", "refresh_token": "1//refresh"}
        sess["user"] = {"id": "42", "name": "Desk Editor", "email": "desk@example.com", "photo": None}
    return client


@pytest.fixture()
def auth_client(client):
    return sign_in(client)
