"""DomainInsight API package.

Domain research (WHOIS, DNS, security reputation and IP abuse lookups) behind a
plan-gated FastAPI service. The app itself lives in domain_insight.main.
"""
