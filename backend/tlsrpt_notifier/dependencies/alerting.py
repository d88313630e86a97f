"""
FastAPI dependencies for alert dispatching.

The dispatcher, and with it the cooldown gate and the cached template, is
created once per process and shared by every request.
"""
from functools import lru_cache
from pathlib import Path

from tlsrpt_notifier.config import get_settings
from tlsrpt_notifier.services.alert_dispatcher import AlertDispatcher
from tlsrpt_notifier.services.alert_gate import AlertGate
from tlsrpt_notifier.services.mailer import Mailer, SMTPConfig
from tlsrpt_notifier.services.template_renderer import DEFAULT_TEMPLATE_PATH, TemplateResource


@lru_cache()
def get_dispatcher() -> AlertDispatcher:
    settings = get_settings()
    template_path = Path(settings.template_path) if settings.template_path else DEFAULT_TEMPLATE_PATH

    return AlertDispatcher(
        mailer=Mailer(SMTPConfig.from_settings(settings)),
        gate=AlertGate(cooldown_seconds=settings.email_cooldown),
        template=TemplateResource(template_path),
    )
