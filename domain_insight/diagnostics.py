#!/usr/bin/env python3
"""
Provider diagnostics - call every data provider once per domain and print the outcome.
Bypasses the research cache. Exit status is 1 if any live provider failed.

    python -m domain_insight.diagnostics google.com example.org
"""
import asyncio, sys
import httpx
from domain_insight.config import USER_AGENT, get_settings
from domain_insight.fanout import describe_failure, with_timeout
from domain_insight.providers import Providers, build_providers
from domain_insight.validation import InvalidDomain, normalize_domain

DEFAULT_DOMAINS = ["google.com"]


async def check_domain(providers: Providers, domain: str) -> bool:
    print(f"\nTesting providers for {domain}")
    ok = True

    try:
        whois = await with_timeout(providers.whois.lookup(domain), providers.whois.timeout)
        print(f"✔ whois [{whois.source}]: registrar={whois.registrar}, expires={whois.expiration_date}")
    except Exception as e:
        ok = False
        print(f"✘ {describe_failure('whois', e)}")

    try:
        security = await with_timeout(providers.security.lookup(domain), providers.security.timeout)
        print(f"✔ security [{security.source}]: {security.reputation}")
    except Exception as e:
        ok = False
        print(f"✘ {describe_failure('security', e)}")

    dns = None
    try:
        dns = await providers.dns.lookup(domain)
        print(f"✔ dns: A={', '.join(dns.a) or 'none'} MX={len(dns.mx)} TXT={len(dns.txt)} NS={len(dns.ns)}")
    except Exception as e:
        ok = False
        print(f"✘ {describe_failure('dns', e)}")

    if providers.abuse is None:
        print("- abuse: ABUSE_IP_DB_KEY not configured")
    elif dns is None or not dns.a:
        print("- abuse: no A record to check")
    else:
        try:
            abuse = await with_timeout(providers.abuse.lookup(dns.a[0]), providers.abuse.timeout)
            print(f"✔ abuse: IP {abuse.ip}, confidence {abuse.abuse_confidence}%, reports {abuse.total_reports}")
        except Exception as e:
            ok = False
            print(f"✘ {describe_failure('abuse', e)}")

    return ok


async def run(domains) -> bool:
    settings = get_settings()
    print("Checking API keys:")
    for var, value in (
        ("WHOISJSON_API_KEY", settings.whoisjson_api_key),
        ("VIRUSTOTAL_API_KEY", settings.virustotal_api_key),
        ("ABUSE_IP_DB_KEY", settings.abuse_ip_db_key),
    ):
        print(f"  {var}: {'set' if value else 'missing'}")

    async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as client:
        providers = build_providers(settings, client)
        results = [await check_domain(providers, d) for d in domains]
    return all(results)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    try:
        domains = [normalize_domain(d) for d in argv] or DEFAULT_DOMAINS
    except InvalidDomain as e:
        sys.exit(f"Invalid domain: {e}")

    ok = asyncio.run(run(domains))
    print("\n" + "=" * 50)
    print("All providers OK" if ok else "Some providers failed")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
