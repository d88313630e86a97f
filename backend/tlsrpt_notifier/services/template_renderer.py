"""
Alert email template rendering.

Templates are plain HTML files with {{placeholder}} tokens. The template file
is read once per process, on first use, and kept in memory.
"""
import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates" / "alert-email.html"

_HEAD_RE = re.compile(r"<head>[\s\S]*</head>")
_TAG_RE = re.compile(r"<[^>]*>")


class TemplateResource:
    """
    Lazily loaded, never reloaded template text.

    Concurrent first calls to get() share a single file read.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_TEMPLATE_PATH):
        self.path = Path(path)
        self._text: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def loaded(self) -> bool:
        return self._text is not None

    async def get(self) -> str:
        if self._text is not None:
            return self._text

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())

        pending = self._pending
        try:
            text = await asyncio.shield(pending)
        except Exception:
            # Let the next caller retry a failed read
            if self._pending is pending:
                self._pending = None
            raise

        self._text = text
        self._pending = None
        return text

    async def _load(self) -> str:
        logger.info(f"Loading alert template from {self.path}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read)

    def _read(self) -> str:
        return self.path.read_text(encoding="utf-8")


def fill_template(template: str, values: Mapping[str, Any]) -> str:
    """
    Replace every {{key}} token with its value.

    Keys missing from the template are ignored and tokens without a value are
    left as they are.
    """
    rendered = template
    for key, value in values.items():
        rendered = rendered.replace("{{" + key + "}}", "" if value is None else str(value))
    return rendered


def html_to_text(html: str) -> str:
    """Plaintext rendering of an HTML email: drop <head>, then strip tags"""
    without_head = _HEAD_RE.sub("", html, count=1)
    return _TAG_RE.sub("", without_head)
