"""
TLS-RPT (TLS Reporting) Service.

Decodes and parses TLS-RPT reports (RFC 8460) submitted over HTTPS and
extracts the per-policy failure details that should trigger an alert.

Report format: JSON, optionally gzip compressed
DNS record: _smtp._tls.domain TXT "v=TLSRPTv1; rua=https://host/v1/tls-rpt"
"""

import json
import logging
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from tlsrpt_notifier.error_handlers import MalformedReportError

logger = logging.getLogger(__name__)

# Accept both gzip and zlib framing
_AUTO_DETECT_WBITS = zlib.MAX_WBITS | 32


class ResultType(str, Enum):
    """TLS-RPT result types"""
    STARTTLS_NOT_SUPPORTED = "starttls-not-supported"
    CERTIFICATE_HOST_MISMATCH = "certificate-host-mismatch"
    CERTIFICATE_EXPIRED = "certificate-expired"
    CERTIFICATE_NOT_TRUSTED = "certificate-not-trusted"
    VALIDATION_FAILURE = "validation-failure"
    TLSA_INVALID = "tlsa-invalid"
    DNSSEC_INVALID = "dnssec-invalid"
    DANE_REQUIRED = "dane-required"
    STS_POLICY_FETCH_ERROR = "sts-policy-fetch-error"
    STS_POLICY_INVALID = "sts-policy-invalid"
    STS_WEBPKI_INVALID = "sts-webpki-invalid"


@dataclass(frozen=True)
class FailureDetail:
    """Failure detail from report"""
    result_type: Optional[str] = None
    sending_mta_ip: Optional[str] = None
    receiving_mx_hostname: Optional[str] = None
    receiving_ip: Optional[str] = None
    failed_session_count: int = 0
    additional_info_uri: Optional[str] = None
    failure_reason_code: Optional[str] = None


@dataclass(frozen=True)
class PolicyResult:
    """One policy section of a report"""
    policy_domain: Optional[str] = None
    total_successful_session_count: int = 0
    total_failure_session_count: int = 0
    # None when the report has no failure-details list for this policy
    failure_details: Optional[List[FailureDetail]] = None


@dataclass(frozen=True)
class TLSReport:
    """Parsed TLS-RPT submission"""
    organization_name: Optional[str]
    contact_info: Optional[str]
    report_id: Optional[str]
    start_datetime: Optional[datetime]
    end_datetime: Optional[datetime]
    policies: List[PolicyResult]
    raw: str = field(repr=False, default="")


@dataclass(frozen=True)
class FailureWorkItem:
    """Everything needed to alert about one failing policy"""
    org_name: Optional[str]
    report_id: Optional[str]
    contact_info: Optional[str]
    domain: Optional[str]
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    success_count: int
    fail_count: int
    failure_details: List[FailureDetail]


# ==================== Decoding ====================

def decode_payload(data: bytes, compressed: bool) -> bytes:
    """
    Decompress a submitted payload when the transport declared it compressed.

    A payload that fails to decompress is passed through unchanged; if it is
    not valid JSON either, parsing will reject it.
    """
    if not compressed:
        return data

    try:
        return zlib.decompress(data, _AUTO_DETECT_WBITS)
    except zlib.error as e:
        logger.warning(f"Failed to decompress TLS-RPT payload, trying as raw JSON: {e}")
        return data


# ==================== Parsing ====================

def parse_report(data: Union[bytes, str]) -> TLSReport:
    """
    Parse a TLS-RPT report.

    Raises:
        MalformedReportError: payload is not UTF-8 encoded JSON object
    """
    try:
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        report_json = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedReportError(f"Failed to parse TLS-RPT JSON: {e}") from e

    if not isinstance(report_json, dict):
        raise MalformedReportError("TLS-RPT report must be a JSON object")

    return _parse_json_report(report_json, text)


def _parse_json_report(report: Dict[str, Any], raw: str) -> TLSReport:
    date_range = _as_dict(report.get("date-range"))

    policies = []
    raw_policies = report.get("policies")
    if isinstance(raw_policies, list):
        for policy_data in raw_policies:
            if not isinstance(policy_data, dict):
                logger.warning("Skipping non-object policy entry in TLS-RPT report")
                continue
            policies.append(_parse_policy(policy_data))

    return TLSReport(
        organization_name=_as_str(report.get("organization-name")),
        contact_info=_as_str(report.get("contact-info")),
        report_id=_as_str(report.get("report-id")),
        start_datetime=_parse_datetime(date_range.get("start-datetime")),
        end_datetime=_parse_datetime(date_range.get("end-datetime")),
        policies=policies,
        raw=raw,
    )


def _parse_policy(policy_data: Dict[str, Any]) -> PolicyResult:
    policy = _as_dict(policy_data.get("policy"))
    summary = _as_dict(policy_data.get("summary"))

    failure_details = None
    raw_details = policy_data.get("failure-details")
    if isinstance(raw_details, list):
        # Non-object entries keep their slot so the list length is preserved
        failure_details = [
            _parse_failure_detail(detail) if isinstance(detail, dict) else FailureDetail()
            for detail in raw_details
        ]

    return PolicyResult(
        policy_domain=_as_str(policy.get("policy-domain")),
        total_successful_session_count=_as_int(summary.get("total-successful-session-count")),
        total_failure_session_count=_as_int(summary.get("total-failure-session-count")),
        failure_details=failure_details,
    )


def _parse_failure_detail(detail: Dict[str, Any]) -> FailureDetail:
    return FailureDetail(
        result_type=_as_str(detail.get("result-type")),
        sending_mta_ip=_as_str(detail.get("sending-mta-ip")),
        receiving_mx_hostname=_as_str(detail.get("receiving-mx-hostname")),
        receiving_ip=_as_str(detail.get("receiving-ip")),
        failed_session_count=_as_int(detail.get("failed-session-count")),
        additional_info_uri=_as_str(detail.get("additional-info-uri")),
        failure_reason_code=_as_str(detail.get("failure-reason-code")),
    )


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp into an aware UTC datetime"""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable TLS-RPT datetime: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _as_int(value: Any) -> int:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


# ==================== Extraction ====================

def extract_failures(report: TLSReport) -> Iterator[FailureWorkItem]:
    """Yield one work item per policy that reported failure details, in order"""
    for policy in report.policies:
        success_count = policy.total_successful_session_count
        fail_count = policy.total_failure_session_count

        logger.info(f"{report.organization_name}: Success: {success_count}, Failure: {fail_count}.")

        if not policy.failure_details:
            continue

        # The reporting window start is used for both ends of the alert range
        yield FailureWorkItem(
            org_name=report.organization_name,
            report_id=report.report_id,
            contact_info=report.contact_info,
            domain=policy.policy_domain,
            start_time=report.start_datetime,
            end_time=report.start_datetime,
            success_count=success_count,
            fail_count=fail_count,
            failure_details=list(policy.failure_details),
        )
