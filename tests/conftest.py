import pytest
from fastapi.testclient import TestClient

from domain_insight.billing import limiter
from domain_insight.db import get_store
from domain_insight.main import app
from domain_insight.providers import Providers
from domain_insight.research import DomainResearchAggregator
from domain_insight.research_api import get_aggregator

from fakes import DNS, SECURITY, WHOIS, FakeStore, StubProvider


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def providers():
    return Providers(
        whois=StubProvider("whois", WHOIS),
        security=StubProvider("security", SECURITY),
        dns=StubProvider("dns", DNS),
    )


@pytest.fixture
def aggregator(providers):
    return DomainResearchAggregator(providers)


@pytest.fixture
def client(store, aggregator):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True
