"""
TLS-RPT (TLS Reporting) submission routes.

Endpoints:
- POST /v1/tls-rpt - Submit a TLS-RPT report (RFC 8460 HTTPS transport)
- POST /v1/tlsrpt  - Alias of the above
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status

from tlsrpt_notifier.dependencies import get_dispatcher
from tlsrpt_notifier.error_handlers import MalformedReportError
from tlsrpt_notifier.metrics import record_report_received
from tlsrpt_notifier.services.alert_dispatcher import AlertDispatcher, dispatch_report
from tlsrpt_notifier.services.tls_rpt_service import decode_payload, parse_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["TLS-RPT"])


def is_compressed(content_type: str) -> bool:
    """application/tlsrpt+gzip marks a gzip compressed report"""
    return content_type.strip().lower().endswith("gzip")


@router.post(
    "/tls-rpt",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Submit TLS-RPT report"
)
@router.post(
    "/tlsrpt",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    include_in_schema=False
)
async def submit_report(
    request: Request,
    background_tasks: BackgroundTasks,
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
):
    """
    Accept a TLS-RPT report.

    Accepts:
    - JSON bodies
    - Gzipped JSON bodies (Content-Type ending in "gzip")

    The response does not say whether an alert was sent; alerts are
    dispatched after the response has been returned.
    """
    body = await request.body()
    data = decode_payload(body, is_compressed(request.headers.get("content-type", "")))

    try:
        report = parse_report(data)
    except MalformedReportError:
        record_report_received("malformed")
        raise

    record_report_received("accepted")
    logger.info(
        f"Received TLS-RPT report {report.report_id} from {report.organization_name} "
        f"({len(report.policies)} policies)"
    )

    background_tasks.add_task(dispatch_report, dispatcher, report)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
