import pytest

from domain_insight.diagnostics import check_domain
from domain_insight.errors import ProviderError
from domain_insight.providers import Providers

from fakes import DNS, SECURITY, WHOIS, StubProvider

pytestmark = pytest.mark.asyncio


async def test_all_providers_ok(capsys):
    providers = Providers(
        whois=StubProvider("whois", WHOIS),
        security=StubProvider("security", SECURITY),
        dns=StubProvider("dns", DNS),
    )

    assert await check_domain(providers, "example.com") is True

    out = capsys.readouterr().out
    assert "✔ whois [whoisjson]: registrar=MarkMonitor Inc." in out
    assert "A=93.184.216.34" in out
    assert "abuse: ABUSE_IP_DB_KEY not configured" in out


async def test_failed_provider_is_reported(capsys):
    providers = Providers(
        whois=StubProvider("whois", WHOIS),
        security=StubProvider("security", error=ProviderError("security", "VirusTotal API key invalid or expired")),
        dns=StubProvider("dns", DNS),
    )

    assert await check_domain(providers, "example.com") is False
    assert "✘ security: VirusTotal API key invalid or expired" in capsys.readouterr().out
