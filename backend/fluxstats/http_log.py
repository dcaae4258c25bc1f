"""Request logging for calls to the Flux APIs.

The public Flux endpoints need no credentials, but every URL comes from the
environment, so a deployment can point them at a proxy that does. Those parts
are masked before a URL reaches the log.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger("fluxstats.http")

MASK = "REDACTED"
CREDENTIAL_PARAMS = frozenset({"apikey", "api_key", "key", "token", "access_token", "secret", "signature"})


def loggable_url(url: httpx.URL | str) -> str:
    """`url` with its password and credential query values masked."""
    try:
        parsed = httpx.URL(str(url))
    except httpx.InvalidURL:
        return "<invalid url>"
    if parsed.password:
        parsed = parsed.copy_with(password=MASK)
    if any(key.lower() in CREDENTIAL_PARAMS for key in parsed.params.keys()):
        parsed = parsed.copy_with(
            params=[
                (key, MASK if key.lower() in CREDENTIAL_PARAMS else value)
                for key, value in parsed.params.multi_items()
            ]
        )
    return str(parsed)


async def _log_request(request: httpx.Request) -> None:
    logger.debug("Flux request %s %s", request.method, loggable_url(request.url))


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.info(
        "Flux response %s %s status=%d",
        request.method,
        loggable_url(request.url),
        response.status_code,
    )


def request_logging_hooks() -> dict[str, list]:
    return {"request": [_log_request], "response": [_log_response]}


def quiet_client_loggers() -> None:
    # httpx logs every request URL verbatim at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
