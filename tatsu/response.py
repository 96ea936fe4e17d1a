"""Read tickets and blobs out of a TSS server response."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .errors import TSSError

_logger = logging.getLogger("tatsu")


def _get_data_by_key(response: Any, name: str) -> bytes:
    value = response.get(name) if isinstance(response, Mapping) else None
    if not isinstance(value, (bytes, bytearray)):
        _logger.debug("DEBUG: No entry '%s' in TSS response", name)
        raise TSSError(f"No entry '{name}' in TSS response")
    return bytes(value)


def _entry_of(response: Any, entry: str) -> Mapping[str, Any]:
    node = response.get(entry) if isinstance(response, Mapping) else None
    if not isinstance(node, Mapping):
        _logger.debug("DEBUG: No entry '%s' in TSS response", entry)
        raise TSSError(f"No entry '{entry}' in TSS response")
    return node


def get_ap_img4_ticket(response: Mapping[str, Any]) -> bytes:
    """Return the IMG4 AP ticket; raise TSSError if there is none."""
    return _get_data_by_key(response, "ApImg4Ticket")


def get_ap_ticket(response: Mapping[str, Any]) -> bytes:
    """Return the IMG3 AP ticket; raise TSSError if there is none."""
    return _get_data_by_key(response, "APTicket")


def get_baseband_ticket(response: Mapping[str, Any]) -> bytes:
    """Return the baseband ticket; raise TSSError if there is none."""
    return _get_data_by_key(response, "BBTicket")


def get_path_by_entry(response: Mapping[str, Any], entry: str) -> str:
    """Return the Path string of a response entry; raise TSSError if it has none."""
    node = _entry_of(response, entry)
    path = node.get("Path")
    if not isinstance(path, str):
        _logger.debug("NOTE: Unable to find %s path in TSS entry", entry)
        raise TSSError(f"Unable to find {entry} path in TSS entry")
    return path


def get_blob_by_path(response: Mapping[str, Any], path: str) -> bytes:
    """Return the Blob of the first entry whose Path is ``path``.

    Raises TSSError when a dictionary entry before the match lacks a Path,
    when the matching entry lacks a Blob, or when no non-empty blob is found.
    """
    if not isinstance(response, Mapping):
        raise TSSError(f"No blob for path {path} in TSS response")
    blob = b""
    for name, entry in response.items():
        if not isinstance(entry, Mapping):
            continue
        entry_path = entry.get("Path")
        if not isinstance(entry_path, str):
            _logger.error("ERROR: Unable to find TSS path node in entry %s", name)
            raise TSSError(f"Unable to find TSS path node in entry {name}")
        if entry_path == path:
            value = entry.get("Blob")
            if not isinstance(value, (bytes, bytearray)):
                _logger.error("ERROR: Unable to find TSS blob node in entry %s", name)
                raise TSSError(f"Unable to find TSS blob node in entry {name}")
            blob = bytes(value)
            break
    if not blob:
        raise TSSError(f"No blob for path {path} in TSS response")
    return blob


def get_blob_by_entry(response: Mapping[str, Any], entry: str) -> bytes:
    """Return the Blob of a response entry; raise TSSError if it has none."""
    node = _entry_of(response, entry)
    blob = node.get("Blob")
    if not isinstance(blob, (bytes, bytearray)):
        _logger.error("ERROR: Unable to find blob in %s entry", entry)
        raise TSSError(f"Unable to find blob in {entry} entry")
    return bytes(blob)