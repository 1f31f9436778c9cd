"""structlog configuration.

Learn: Every module does ``logger = structlog.get_logger()`` and logs
event-style names with keyword context (``auth.login_succeeded``,
``account_id=...``). This module wires the processor chain once, at app
startup:

- merge_contextvars pulls in request_id/path bound by RequestIdMiddleware
- redact_secrets masks any key that looks like a credential
- log_json switches console output to one JSON object per line
"""

import logging

import structlog

from vidtube.config import Settings, settings as default_settings

SECRET_KEY_PARTS = ("password", "secret", "token", "authorization", "cookie", "api_key")


def redact_secrets(logger, method_name, event_dict):
    """Mask values whose key names a credential."""
    for key in list(event_dict):
        if key == "event":
            continue
        if any(part in key.lower() for part in SECRET_KEY_PARTS):
            event_dict[key] = "***"
    return event_dict


def configure_logging(settings: Settings = None) -> None:
    settings = settings or default_settings
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
