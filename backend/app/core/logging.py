"""
Structured logging setup shared by the search filter components.
"""
import logging
import re
from typing import Optional

import structlog

from app.core.settings import settings

MAX_LOGGED_VALUE_LENGTH = 200


# Redaction processor to scrub API keys and oversized payloads from the event dict
def redact_sensitive_values(logger, method_name, event_dict):

    def scrub(v):
        if isinstance(v, str):
            # redact API keys passed as query params
            v = re.sub(r'([?&]key=)[^&\s]+', r'\1REDACTED', v)
            v = re.sub(r'(AIza[0-9A-Za-z\-_]{35})', 'REDACTED', v)
            # long values are usually raw user or model text
            if len(v) > MAX_LOGGED_VALUE_LENGTH:
                v = v[:MAX_LOGGED_VALUE_LENGTH] + "...[truncated]"
            return v
        if isinstance(v, list):
            return [scrub(x) for x in v]
        if isinstance(v, dict):
            return {k: scrub(vv) for k, vv in v.items()}
        return v

    for k, v in list(event_dict.items()):
        event_dict[k] = scrub(v)
    return event_dict


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Install the structlog processor chain on top of stdlib logging"""
    level = (level or settings.LOG_LEVEL).upper()
    json_output = settings.LOG_JSON if json_output is None else json_output

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_sensitive_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(message)s',  # structlog handles formatting
        handlers=[logging.StreamHandler()],
    )
