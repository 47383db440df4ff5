"""Process-wide logging setup (JSON lines for the API and the worker)."""

import logging

from pythonjsonlogger import jsonlogger

from eventpay.core.config import settings

_configured = False


def configure_logging(level: str | None = None, json_format: bool | None = None) -> None:
    """Attach one stream handler to the root logger. Safe to call more than once."""
    global _configured
    if _configured:
        return

    level = (level or settings.LOG_LEVEL).upper()
    json_format = settings.LOG_JSON if json_format is None else json_format

    handler = logging.StreamHandler()
    if json_format:
        formatter = jsonlogger.JsonFormatter("%(levelname)s %(name)s %(message)s %(asctime)s")
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    _configured = True
