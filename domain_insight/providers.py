"""Third-party data providers used by domain research.

Each lookup type has a live variant that calls the provider's HTTP API and,
where the product must run without credentials, a placeholder variant that
returns a clearly labelled stand-in record. build_providers() selects one
variant per lookup type from the configured credentials.

Live providers raise ProviderError (or an httpx error) on any failure; turning
failures into the `errors` list is the aggregator's job.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from domain_insight.config import DEFAULT_DOH_URL, Settings
from domain_insight.errors import ProviderError
from domain_insight.fanout import gather_settled, with_timeout
from domain_insight.models import (
    DNS_RECORD_TYPES,
    AbuseRecord,
    DnsRecordSet,
    Registrant,
    SecurityRecord,
    WhoisRecord,
)

logger = logging.getLogger(__name__)

WHOISJSON_URL = "https://whoisjson.com/api/v1/whois"
VIRUSTOTAL_URL = "https://www.virustotal.com/api/v3/domains/{domain}"
ABUSEIPDB_URL = "https://api.abuseipdb.com/api/v2/check"

# DNS-over-HTTPS JSON answers carry numeric RR types
RECORD_TYPE_CODES = {"A": 1, "NS": 2, "MX": 15, "TXT": 16}
ABUSE_CONFIDENCE_THRESHOLD = 25

PLACEHOLDER_WHOIS = WhoisRecord(
    registrar="Placeholder Registrar (API key needed)",
    registration_date="2020-01-15",
    expiration_date="2025-01-15",
    name_servers=["ns1.example.com", "ns2.example.com"],
    registrant=Registrant(organization="Get real data with API key", country="US"),
    status=["Placeholder status - configure WhoisJSON API"],
    dnssec="Configure API for real data",
    source="placeholder",
)

PLACEHOLDER_SECURITY = SecurityRecord(
    malicious=False,
    reputation="Security data unavailable - configure VirusTotal API",
    threats=0,
    last_scan="Never",
    source="placeholder",
)


def _read_json(resp: httpx.Response, provider: str) -> dict:
    try:
        data = resp.json()
    except ValueError:
        raise ProviderError(provider, "malformed JSON response")
    if not isinstance(data, dict):
        raise ProviderError(provider, "unexpected response shape")
    return data


def _as_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


# ==================== WHOIS ====================

class WhoisProvider:
    name = "whois"
    timeout = 10.0

    async def lookup(self, domain: str) -> WhoisRecord:
        raise NotImplementedError


class PlaceholderWhoisProvider(WhoisProvider):
    async def lookup(self, domain: str) -> WhoisRecord:
        return PLACEHOLDER_WHOIS


class WhoisJsonProvider(WhoisProvider):
    def __init__(self, api_key: str, client: httpx.AsyncClient, url: str = WHOISJSON_URL):
        self.api_key = api_key
        self.client = client
        self.url = url

    async def lookup(self, domain: str) -> WhoisRecord:
        resp = await self.client.get(
            self.url,
            params={"domain": domain},
            headers={"Authorization": f"Token={self.api_key}", "Accept": "application/json"},
            timeout=self.timeout,
        )
        if resp.status_code == 401:
            raise ProviderError(self.name, "WhoisJSON authentication failed - check your API key")
        if resp.status_code == 429:
            raise ProviderError(self.name, "WhoisJSON rate limit exceeded")
        if not resp.is_success:
            raise ProviderError(self.name, f"WhoisJSON API error: {resp.status_code}")

        data = _read_json(resp, self.name)
        try:
            return parse_whoisjson(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise ProviderError(self.name, f"malformed WhoisJSON record: {e}")


def parse_whoisjson(data: dict) -> WhoisRecord:
    """Normalize the several shapes WhoisJSON returns for the same fields"""
    registrar = data.get("registrar")
    if isinstance(registrar, dict):
        registrar = registrar.get("name")

    registrant = (data.get("contacts") or {}).get("registrant") or {}
    if isinstance(registrant, list):
        registrant = registrant[0] if registrant else {}

    return WhoisRecord(
        registrar=registrar or "Unknown",
        registration_date=str(data.get("created") or data.get("creation_date") or "Unknown"),
        expiration_date=str(data.get("expires") or data.get("expiry_date") or "Unknown"),
        name_servers=_as_list(data.get("nameserver") or data.get("nameservers")),
        registrant=Registrant(
            organization=registrant.get("organization")
            or data.get("registrant_organization")
            or data.get("admin_organization")
            or "Private Registration",
            country=registrant.get("country")
            or data.get("registrant_country")
            or data.get("admin_country")
            or "Unknown",
        ),
        status=_as_list(data.get("status")),
        dnssec=str(data.get("dnssec") or "Unknown"),
    )


# ==================== SECURITY REPUTATION ====================

class SecurityProvider:
    name = "security"
    timeout = 10.0

    async def lookup(self, domain: str) -> SecurityRecord:
        raise NotImplementedError


class PlaceholderSecurityProvider(SecurityProvider):
    async def lookup(self, domain: str) -> SecurityRecord:
        return PLACEHOLDER_SECURITY


class VirusTotalProvider(SecurityProvider):
    def __init__(self, api_key: str, client: httpx.AsyncClient, url: str = VIRUSTOTAL_URL):
        self.api_key = api_key
        self.client = client
        self.url = url

    async def lookup(self, domain: str) -> SecurityRecord:
        resp = await self.client.get(
            self.url.format(domain=domain),
            headers={"x-apikey": self.api_key},
            timeout=self.timeout,
        )
        if resp.status_code == 404:
            # Domain never submitted to VirusTotal
            return SecurityRecord(
                malicious=False,
                reputation="Not yet analyzed by VirusTotal",
                threats=0,
                last_scan="Never",
                not_in_database=True,
            )
        if resp.status_code in (401, 403):
            raise ProviderError(self.name, "VirusTotal API key invalid or expired")
        if resp.status_code == 429:
            raise ProviderError(self.name, "VirusTotal rate limit exceeded (max 4 requests/minute for free)")
        if not resp.is_success:
            raise ProviderError(self.name, f"VirusTotal API error: {resp.status_code}")

        payload = _read_json(resp, self.name)
        try:
            return parse_virustotal(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProviderError(self.name, f"malformed VirusTotal report: {e}")


def parse_virustotal(payload: dict) -> SecurityRecord:
    data = payload["data"]
    attributes = data["attributes"]
    stats = attributes.get("last_analysis_stats") or {}

    malicious = stats.get("malicious", 0)
    suspicious = stats.get("suspicious", 0)
    harmless = stats.get("harmless", 0)
    undetected = stats.get("undetected", 0)
    total = malicious + suspicious + harmless + undetected + stats.get("timeout", 0)
    threats = malicious + suspicious

    threat_details = []
    for engine, result in (attributes.get("last_analysis_results") or {}).items():
        if result.get("category") in ("malicious", "suspicious"):
            threat_details.append(f"{engine}: {result.get('result')}")

    last_analysis = attributes.get("last_analysis_date")
    if last_analysis:
        last_scan = datetime.fromtimestamp(last_analysis, tz=timezone.utc).date().isoformat()
    else:
        last_scan = "Unknown"

    if threats > 0:
        reputation = f"{threats}/{total} security engines detected threats"
    else:
        reputation = f"Clean - {harmless}/{total} engines verified as safe"

    categories = attributes.get("categories")
    return SecurityRecord(
        malicious=threats > 0,
        reputation=reputation,
        threats=threats,
        last_scan=last_scan,
        total=total,
        malicious_count=malicious,
        suspicious=suspicious,
        harmless=harmless,
        undetected=undetected,
        categories=categories if isinstance(categories, dict) else {},
        threat_details=threat_details[:3],
        reputation_score=attributes.get("reputation") or 0,
        scan_id=data.get("id"),
    )


# ==================== DNS ====================

class DohDnsProvider:
    """
    DNS over HTTPS (JSON API). Record types are queried concurrently and each
    query has its own timeout; a failed type resolves to an empty list. The
    lookup as a whole only fails when every query failed.
    """
    name = "dns"
    timeout = 5.0  # per record type

    def __init__(self, client: httpx.AsyncClient, url: str = DEFAULT_DOH_URL, record_types=DNS_RECORD_TYPES):
        self.client = client
        self.url = url
        self.record_types = record_types

    async def query(self, domain: str, record_type: str) -> List[str]:
        resp = await self.client.get(
            self.url,
            params={"name": domain, "type": record_type},
            headers={"Accept": "application/dns-json"},
            timeout=self.timeout,
        )
        if not resp.is_success:
            raise ProviderError(self.name, f"{record_type} query failed: HTTP {resp.status_code}")

        data = _read_json(resp, self.name)
        code = RECORD_TYPE_CODES.get(record_type)
        values = []
        for rr in data.get("Answer") or []:
            if not isinstance(rr, dict) or not isinstance(rr.get("data"), str):
                continue
            # skip CNAME hops in the answer chain
            if code is not None and rr.get("type", code) != code:
                continue
            values.append(rr["data"])
        return values

    async def lookup(self, domain: str) -> DnsRecordSet:
        outcomes = await gather_settled({
            rtype: with_timeout(self.query(domain, rtype), self.timeout)
            for rtype in self.record_types
        })

        records = {}
        for rtype, outcome in outcomes.items():
            if outcome.ok:
                records[rtype.lower()] = outcome.value
            else:
                logger.warning(f"DNS lookup error for {outcome.describe()} on {domain}")
                records[rtype.lower()] = []

        if not any(outcome.ok for outcome in outcomes.values()):
            raise ProviderError(self.name, "all DNS queries failed")
        return DnsRecordSet(**records)


# ==================== IP ABUSE ====================

class AbuseIpDbProvider:
    name = "abuse"
    timeout = 10.0

    def __init__(self, api_key: str, client: httpx.AsyncClient, url: str = ABUSEIPDB_URL):
        self.api_key = api_key
        self.client = client
        self.url = url

    async def lookup(self, ip: str) -> AbuseRecord:
        resp = await self.client.get(
            self.url,
            params={"ipAddress": ip, "maxAgeInDays": 90, "verbose": ""},
            headers={"Key": self.api_key, "Accept": "application/json"},
            timeout=self.timeout,
        )
        if not resp.is_success:
            raise ProviderError(self.name, f"AbuseIPDB API error: {resp.status_code}")

        payload = _read_json(resp, self.name)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProviderError(self.name, "malformed AbuseIPDB report")

        confidence = int(data.get("abuseConfidencePercentage") or 0)
        return AbuseRecord(
            ip=ip,
            abuse_confidence=confidence,
            is_abusive=confidence > ABUSE_CONFIDENCE_THRESHOLD,
            country_code=data.get("countryCode"),
            usage_type=data.get("usageType"),
            isp=data.get("isp"),
            domain=data.get("domain"),
            total_reports=data.get("totalReports") or 0,
            num_distinct_users=data.get("numDistinctUsers") or 0,
            last_reported_at=data.get("lastReportedAt"),
            is_whitelisted=data.get("isWhitelisted"),
        )


@dataclass
class Providers:
    whois: WhoisProvider
    security: SecurityProvider
    dns: DohDnsProvider
    abuse: Optional[AbuseIpDbProvider] = None


def build_providers(settings: Settings, client: httpx.AsyncClient) -> Providers:
    """Pick live or placeholder providers depending on which credentials are configured"""
    if settings.whoisjson_api_key:
        whois = WhoisJsonProvider(settings.whoisjson_api_key, client)
    else:
        logger.warning("WHOISJSON_API_KEY not configured, using placeholder WHOIS data")
        whois = PlaceholderWhoisProvider()

    if settings.virustotal_api_key:
        security = VirusTotalProvider(settings.virustotal_api_key, client)
    else:
        logger.warning("VIRUSTOTAL_API_KEY not configured, security data unavailable")
        security = PlaceholderSecurityProvider()

    abuse = None
    if settings.abuse_ip_db_key:
        abuse = AbuseIpDbProvider(settings.abuse_ip_db_key, client)
    else:
        logger.info("ABUSE_IP_DB_KEY not configured, IP abuse lookups disabled")

    return Providers(
        whois=whois,
        security=security,
        dns=DohDnsProvider(client, url=settings.doh_url),
        abuse=abuse,
    )
