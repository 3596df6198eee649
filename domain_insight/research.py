"""
Domain research aggregation.

research_domain() fans out to the WHOIS, security-reputation and DNS providers
concurrently, waits for all of them to settle, merges whatever succeeded into a
single DomainResearchResult and caches it. Provider failures end up as None
fields plus an entry in `errors`; they never propagate to the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import httpx

from domain_insight.cache import ResearchCache, build_cache
from domain_insight.config import USER_AGENT, Settings
from domain_insight.errors import ResearchError
from domain_insight.fanout import Outcome, gather_settled, with_timeout
from domain_insight.models import DomainResearchResult
from domain_insight.providers import Providers, build_providers

logger = logging.getLogger(__name__)

BRANCHES = ("whois", "security", "dns", "abuse")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainResearchAggregator:
    def __init__(
        self,
        providers: Providers,
        cache=None,
        now: Callable[[], datetime] = utcnow,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.providers = providers
        self.cache = cache if cache is not None else ResearchCache()
        self.now = now
        self.client = client

    async def research_domain(self, domain: str) -> DomainResearchResult:
        """
        Research a domain that the caller has already validated. Case is ignored:
        the result and the cache entry use the lower-cased name.

        Returns the cached result (cached=True) when one younger than the cache
        TTL exists. Otherwise queries every provider, caches the merged result
        (even when every provider failed) and returns it with cached=False.

        Raises ResearchError only for internal failures while merging.
        """
        domain = domain.strip().lower()
        hit = await self.cache.get(domain)
        if hit is not None:
            logger.info(f"Research cache hit for {domain}")
            return hit

        logger.info(f"Researching domain: {domain}")
        outcomes = await self._fetch(domain)

        try:
            result = self._merge(domain, outcomes)
        except Exception as e:
            logger.exception(f"Domain research failed for {domain}")
            raise ResearchError(f"Domain research failed: {e}") from e

        await self.cache.set(domain, result.model_copy(update={"cached": True}))

        if result.errors:
            logger.info(f"Domain research completed for {domain} with {len(result.errors)} provider error(s)")
        else:
            logger.info(f"Domain research completed for {domain}")
        return result

    async def _fetch(self, domain: str) -> Dict[str, Outcome]:
        p = self.providers
        outcomes = await gather_settled({
            "whois": with_timeout(p.whois.lookup(domain), p.whois.timeout),
            "security": with_timeout(p.security.lookup(domain), p.security.timeout),
            # each record-type query carries its own timeout
            "dns": p.dns.lookup(domain),
        })

        # The abuse lookup needs an address, so it can only start once DNS has settled
        dns = outcomes["dns"]
        if p.abuse is not None and dns.ok and dns.value.a:
            ip = dns.value.a[0]
            logger.info(f"Checking IP {ip} for {domain} with AbuseIPDB")
            outcomes.update(await gather_settled({
                "abuse": with_timeout(p.abuse.lookup(ip), p.abuse.timeout),
            }))
        return outcomes

    def _merge(self, domain: str, outcomes: Dict[str, Outcome]) -> DomainResearchResult:
        fields = {}
        errors = []
        for name in BRANCHES:
            outcome = outcomes.get(name)
            if outcome is None:
                fields[name] = None
            elif outcome.ok:
                fields[name] = outcome.value
            else:
                message = outcome.describe()
                logger.warning(f"Provider failure for {domain}: {message}")
                fields[name] = None
                errors.append(message)

        return DomainResearchResult(
            domain=domain,
            errors=errors,
            timestamp=self.now().isoformat(),
            cached=False,
            **fields,
        )

    async def aclose(self):
        if self.client is not None:
            await self.client.aclose()


def build_aggregator(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> DomainResearchAggregator:
    if client is None:
        client = httpx.AsyncClient(headers={"User-Agent": USER_AGENT}, timeout=10.0)
    return DomainResearchAggregator(
        build_providers(settings, client),
        cache=build_cache(settings),
        client=client,
    )
