"""
Alert dispatcher for TLS-RPT failures.

Turns each failing policy of a report into one alert email, subject to the
global cooldown gate.
"""
import html
import logging
import re
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from tlsrpt_notifier.metrics import record_alert_outcome
from tlsrpt_notifier.services.alert_gate import AlertGate
from tlsrpt_notifier.services.mailer import AlertError, ConfigurationError, Mailer
from tlsrpt_notifier.services.template_renderer import TemplateResource, fill_template, html_to_text
from tlsrpt_notifier.services.tls_rpt_service import (
    FailureDetail,
    FailureWorkItem,
    TLSReport,
    extract_failures,
)

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

_LINE_BREAK_RE = re.compile(r"[\r\n]+")


class DispatchOutcome(str, Enum):
    SENT = "sent"
    RATE_LIMITED = "rate_limited"
    NO_RECIPIENTS = "no_recipients"


def build_subject(item: FailureWorkItem) -> str:
    # Reporter values must not break the Subject header
    subject = f"TLS report from {item.org_name} has failure for {item.domain}"
    return _LINE_BREAK_RE.sub(" ", subject)


def render_failure_detail(index: int, fail: FailureDetail) -> str:
    """HTML table describing a single failure detail"""
    esc = _escape
    extra_info = ""
    if fail.additional_info_uri:
        uri = esc(fail.additional_info_uri)
        extra_info = f'<a href="{uri}">{uri}</a>'

    return f"""<table>
                <tr>
                    <td><strong>Failure {index}</strong></td>
                </tr>
                <tr>
                    <td>Result type</td>
                    <td>{esc(fail.result_type)}</td>
                </tr>
                <tr>
                    <td>Sender server IP</td>
                    <td>{esc(fail.sending_mta_ip)}</td>
                </tr>
                <tr>
                    <td>Receiver</td>
                    <td>{esc(fail.receiving_mx_hostname)} ({esc(fail.receiving_ip)})</td>
                </tr>
                <tr>
                    <td>No. Failed sessions</td>
                    <td>{fail.failed_session_count}</td>
                </tr>
                <tr>
                    <td>Additional information</td>
                    <td>{extra_info}</td>
                </tr>
                <tr>
                    <td>Failure reason</td>
                    <td>{esc(fail.failure_reason_code)}</td>
                </tr>
            </table>"""


def build_template_values(item: FailureWorkItem) -> Dict[str, Any]:
    """Placeholder values for the alert email template"""
    fragments = [
        render_failure_detail(index, fail)
        for index, fail in enumerate(item.failure_details, start=1)
    ]

    return {
        "org_name": _escape(item.org_name),
        "contact_info": _escape(item.contact_info),
        "report_id": _escape(item.report_id),
        "domain": _escape(item.domain),
        "failure_details": "\r\n".join(fragments),
        "date": _format_date(item.start_time),
        "start": _format_time(item.start_time),
        "end": _format_time(item.end_time),
        "subject": _escape(build_subject(item)),
        "success_count": item.success_count,
        "failure_count": item.fail_count,
    }


def _escape(value: Optional[Any]) -> str:
    return "" if value is None else html.escape(str(value))


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return UNKNOWN
    return f"{value.day}/{value.month}/{value.year}"


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return UNKNOWN
    return f"{value.hour}:{value.minute}"


class AlertDispatcher:
    """Sends rate limited alert emails for TLS-RPT failures"""

    def __init__(
        self,
        mailer: Mailer,
        gate: AlertGate,
        template: TemplateResource,
        clock: Callable[[], float] = time.time,
    ):
        self.mailer = mailer
        self.gate = gate
        self.template = template
        self.clock = clock

    async def report_issue(self, full_report: TLSReport, item: FailureWorkItem) -> DispatchOutcome:
        """
        Send one alert email for a failing policy.

        Args:
            full_report: The parsed submission, attached verbatim as report.json
            item: Failure details for a single policy

        Returns:
            SENT, or RATE_LIMITED / NO_RECIPIENTS when nothing was sent

        Raises:
            ConfigurationError: mail is not enabled
            DeliveryError: the SMTP server rejected or never received the message
        """
        claim = self.gate.try_claim(self.clock())
        if claim is None:
            logger.info(f"Not sending email for {item.domain}: Rate limited.")
            record_alert_outcome(DispatchOutcome.RATE_LIMITED.value)
            return DispatchOutcome.RATE_LIMITED

        outcome = None
        try:
            outcome = await self._send(full_report, item)
        finally:
            if outcome is DispatchOutcome.SENT:
                self.gate.commit(claim, self.clock())
            else:
                self.gate.release(claim)

        record_alert_outcome(outcome.value)
        return outcome

    async def _send(self, full_report: TLSReport, item: FailureWorkItem) -> DispatchOutcome:
        if not self.mailer.enabled:
            raise ConfigurationError("Can't send alert - mail is not enabled.")

        recipients: List[str] = self.mailer.recipients
        if not recipients:
            logger.info(f"No recipients for domain {item.domain}")
            return DispatchOutcome.NO_RECIPIENTS

        template = await self.template.get()
        html_body = fill_template(template, build_template_values(item))

        msg = self.mailer.build_message(
            subject=build_subject(item),
            text_body=html_to_text(html_body),
            html_body=html_body,
            report_json=full_report.raw,
        )
        message_id = await self.mailer.send(msg)

        logger.info(f"Message sent: {message_id}")
        return DispatchOutcome.SENT


async def dispatch_report(dispatcher: AlertDispatcher, report: TLSReport) -> List[DispatchOutcome]:
    """
    Alert on every failing policy of a report, one policy at a time.

    Dispatch errors are logged and do not stop the remaining policies.
    """
    outcomes = []
    for item in extract_failures(report):
        try:
            outcomes.append(await dispatcher.report_issue(report, item))
        except AlertError as e:
            record_alert_outcome("failed")
            logger.error(
                f"Failed to send TLS-RPT alert for {item.domain}: {e}",
                extra={"domain": item.domain},
                exc_info=True
            )
    return outcomes
