"""Response models for domain research results"""
from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Optional

DNS_RECORD_TYPES = ("A", "MX", "TXT", "NS")


class Registrant(BaseModel):
    model_config = ConfigDict(frozen=True)

    organization: str
    country: str


class WhoisRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    registrar: str
    registration_date: str
    expiration_date: str
    name_servers: List[str] = []
    registrant: Registrant
    status: List[str] = []
    dnssec: str = "Unknown"
    source: str = "whoisjson"


class SecurityRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    malicious: bool
    reputation: str
    threats: int
    last_scan: str
    total: int = 0
    malicious_count: int = 0
    suspicious: int = 0
    harmless: int = 0
    undetected: int = 0
    categories: Dict[str, str] = {}
    threat_details: List[str] = []
    reputation_score: int = 0
    scan_id: Optional[str] = None
    not_in_database: bool = False
    source: str = "virustotal"


class DnsRecordSet(BaseModel):
    """Record values keyed by record type; a type that could not be resolved is an empty list"""
    model_config = ConfigDict(frozen=True)

    a: List[str] = []
    mx: List[str] = []
    txt: List[str] = []
    ns: List[str] = []

    def get(self, record_type: str) -> List[str]:
        return getattr(self, record_type.lower())


class AbuseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str
    abuse_confidence: int
    is_abusive: bool
    country_code: Optional[str] = None
    usage_type: Optional[str] = None
    isp: Optional[str] = None
    domain: Optional[str] = None
    total_reports: int = 0
    num_distinct_users: int = 0
    last_reported_at: Optional[str] = None
    is_whitelisted: Optional[bool] = None


class DomainResearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    whois: Optional[WhoisRecord] = None
    security: Optional[SecurityRecord] = None
    dns: Optional[DnsRecordSet] = None
    abuse: Optional[AbuseRecord] = None
    errors: List[str] = []
    timestamp: str
    cached: bool = False
