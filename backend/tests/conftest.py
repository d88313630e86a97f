"""
Test Configuration and Fixtures

No network access is needed: SMTP delivery is replaced with AsyncMock and the
cooldown gate is driven by a fake clock.
"""

import gzip
import json
from unittest.mock import AsyncMock

import pytest

from tlsrpt_notifier.services.alert_dispatcher import AlertDispatcher
from tlsrpt_notifier.services.alert_gate import AlertGate
from tlsrpt_notifier.services.mailer import Mailer, SMTPConfig
from tlsrpt_notifier.services.template_renderer import DEFAULT_TEMPLATE_PATH, TemplateResource


def make_tlsrpt_report(
    org_name="Example Corp",
    report_id="rpt-2024-001",
    contact="mailto:tls-reports@example.com",
    start_datetime="2024-01-15T09:05:00Z",
    end_datetime="2024-01-16T09:04:59Z",
    policy_domain="example.com",
    total_success=1000,
    total_failure=5,
    failure_details=None,
):
    """Build a minimal RFC 8460 TLS-RPT JSON report with one policy."""
    if failure_details is None:
        failure_details = [
            {
                "result-type": "certificate-expired",
                "sending-mta-ip": "203.0.113.1",
                "receiving-mx-hostname": "mx.example.com",
                "receiving-ip": "198.51.100.1",
                "failed-session-count": 3,
                "additional-info-uri": "https://reports.example.net/info/1",
                "failure-reason-code": "X509_V_ERR_CERT_HAS_EXPIRED",
            },
            {
                "result-type": "starttls-not-supported",
                "sending-mta-ip": "203.0.113.2",
                "receiving-mx-hostname": "mx2.example.com",
                "receiving-ip": "198.51.100.2",
                "failed-session-count": 2,
                "failure-reason-code": "STARTTLS_MISSING",
            },
        ]

    return {
        "organization-name": org_name,
        "date-range": {
            "start-datetime": start_datetime,
            "end-datetime": end_datetime,
        },
        "contact-info": contact,
        "report-id": report_id,
        "policies": [
            {
                "policy": {
                    "policy-type": "sts",
                    "policy-string": ["version: STSv1", "mode: enforce"],
                    "policy-domain": policy_domain,
                    "mx-host": ["mx.example.com"],
                },
                "summary": {
                    "total-successful-session-count": total_success,
                    "total-failure-session-count": total_failure,
                },
                "failure-details": failure_details,
            }
        ],
    }


class FakeClock:
    """Callable clock returning a settable epoch time"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def report_factory():
    """Build report dicts with custom fields"""
    return make_tlsrpt_report


@pytest.fixture
def sample_report():
    return make_tlsrpt_report()


@pytest.fixture
def sample_json(sample_report):
    """Sample report as submitted, in bytes"""
    return json.dumps(sample_report).encode("utf-8")


@pytest.fixture
def sample_gzip(sample_json):
    return gzip.compress(sample_json)


@pytest.fixture
def smtp_config():
    return SMTPConfig(
        host="smtp.example.org",
        port=587,
        username="alerts",
        password="secret",
        from_address="tlsrpt@example.org",
        recipients=["postmaster@example.com", "ops@example.com"],
    )


@pytest.fixture
def mailer(smtp_config):
    """Mailer whose send() never touches the network"""
    mailer = Mailer(smtp_config)
    mailer.send = AsyncMock(return_value="<alert-1@example.org>")
    return mailer


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate():
    return AlertGate(cooldown_seconds=60)


@pytest.fixture
def dispatcher(mailer, gate, clock):
    return AlertDispatcher(
        mailer=mailer,
        gate=gate,
        template=TemplateResource(DEFAULT_TEMPLATE_PATH),
        clock=clock,
    )
