"""Send TSS requests to the signing server and interpret its replies."""

from __future__ import annotations

import logging
import plistlib
import re
import ssl
import time
import urllib.error
import urllib.request
from typing import Any, Mapping
from xml.parsers.expat import ExpatError

from .errors import TSSError

_logger = logging.getLogger("tatsu")

_USER_AGENT = "InetURL/1.0"
_MAX_RETRIES = 15
_RETRY_DELAY = 2
_URLS = (
    "https://gs.apple.com/TSS/controller?action=2",
    "https://gs.apple.com.akadns.net/TSS/controller?action=2",
    "https://gs.apple.com.v.aaplimg.com/TSS/controller?action=2",
    "http://gs.apple.com/TSS/controller?action=2",
    "http://gs.apple.com.akadns.net/TSS/controller?action=2",
    "http://gs.apple.com.v.aaplimg.com/TSS/controller?action=2",
)
_SUCCESS = b"MESSAGE=SUCCESS"
_STATUS = b"STATUS="
_MESSAGE = b"MESSAGE="
_XML_START = b"<?xml"
_INTEGER = re.compile(rb"\s*([+-]?\d+)")
# Status codes the server is known to answer with; others are logged as unhandled.
_KNOWN_STATUSES = frozenset((8, 49, 69, 94, 100, 126))


def _status_of(body: bytes) -> int | None:
    index = body.find(_STATUS)
    if index < 0:
        return None
    match = _INTEGER.match(body, index + len(_STATUS))
    return int(match.group(1)) if match else None


def _message_of(body: bytes) -> str:
    index = body.find(_MESSAGE)
    if index < 0:
        return ""
    return body[index + len(_MESSAGE):].decode("utf-8", errors="replace")


def parse_response(body: bytes | str) -> Any:
    """Return the property list carried by a TSS server reply.

    Raises TSSError whose ``status`` is None when the reply holds no status
    code, the server's status code when it reports a failure, and 0 when a
    reply without a failure status holds no readable property list.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    if _SUCCESS not in body:
        status = _status_of(body)
        if status is None:
            raise TSSError("No status code in TSS response")
        if status != 0:
            raise TSSError(
                f"TSS request failed (status={status}, message={_message_of(body)})", status
            )

    start = body.find(_XML_START)
    if start < 0:
        raise TSSError("Incorrectly formatted TSS response", 0)
    try:
        return plistlib.loads(body[start:], fmt=plistlib.FMT_XML)
    except (ValueError, ExpatError) as exc:
        raise TSSError("Unable to parse TSS response", 0) from exc


def _insecure_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _post(url: str, payload: bytes, context: ssl.SSLContext) -> tuple[bytes, str]:
    """POST ``payload`` and return the reply body and a transport error text."""
    http_request = urllib.request.Request(
        url,
        data=payload,
        method="POST",
        headers={
            "Cache-Control": "no-cache",
            "Content-Type": 'text/xml; charset="utf-8"',
            "User-Agent": _USER_AGENT,
        },
    )
    try:
        with urllib.request.urlopen(http_request, context=context) as reply:
            return reply.read() or b"", ""
    except urllib.error.HTTPError as exc:
        return exc.read() or b"", str(exc)
    except (urllib.error.URLError, OSError) as exc:
        return b"", str(exc)


def send_request(request: Mapping[str, Any], server_url: str | None = None) -> Any:
    """Send ``request`` to the TSS server and return the property list it answers with.

    Without ``server_url`` the known server addresses are tried in turn. A
    reply without a status code is retried after a short pause, up to 15
    attempts; any other failure raises TSSError at once.
    """
    payload = plistlib.dumps(request, fmt=plistlib.FMT_XML)
    _logger.debug("%s", payload.decode("utf-8", errors="replace"))

    context = _insecure_context()
    last_error = ""
    for attempt in range(1, _MAX_RETRIES + 1):
        url = server_url if server_url is not None else _URLS[(attempt - 1) % len(_URLS)]
        _logger.debug("Request URL set to %s", url)
        _logger.debug("Sending TSS request attempt %d... ", attempt)

        body, transport_error = _post(url, payload, context)
        if transport_error:
            last_error = transport_error
        if body and _SUCCESS not in body:
            _logger.error("TSS server returned: %s", body.decode("utf-8", errors="replace"))

        try:
            result = parse_response(body)
        except TSSError as exc:
            if exc.status is None:
                _logger.error("%s", last_error)
                time.sleep(_RETRY_DELAY)
                continue
            if exc.status not in _KNOWN_STATUSES:
                _logger.error("ERROR: tss_send_request: Unhandled status code %d", exc.status)
            _logger.error("ERROR: %s", exc)
            raise

        _logger.debug("response successfully received")
        if isinstance(result, (dict, list)):
            _logger.debug("%s", plistlib.dumps(result, fmt=plistlib.FMT_XML).decode("utf-8"))
        return result

    message = f"TSS request failed: {last_error} (status=-1)"
    _logger.error("ERROR: %s", message)
    raise TSSError(message)