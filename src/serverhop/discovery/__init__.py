"""Server discovery: directory listing and concurrent probing."""

from serverhop.discovery.master import MasterListFetcher, parse_master_payload, resolve_hosting_address
from serverhop.discovery.prober import ProbeSummary, ServerProber, record_from_info
from serverhop.discovery.query import InfoResult, parse_info_response, parse_info_string, query_info

__all__ = [
    "InfoResult",
    "MasterListFetcher",
    "ProbeSummary",
    "ServerProber",
    "parse_info_response",
    "parse_info_string",
    "parse_master_payload",
    "query_info",
    "record_from_info",
    "resolve_hosting_address",
]
