import logging
import sys
from pythonjsonlogger import jsonlogger

from app.config import settings


def configure_logging(level: str = "") -> None:
    if getattr(configure_logging, "_configured", False):
        return

    handler = logging.StreamHandler(sys.stderr)
    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    root.handlers = [handler]
    configure_logging._configured = True
