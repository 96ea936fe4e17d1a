"""Build TSS requests for eUICC, Rose, Veridian, Baobab, timer and Cryptex1 tickets."""

from __future__ import annotations

import contextlib
import copy
import logging
from typing import Any, Mapping, MutableMapping

from .errors import TSSError
from .plistdict import access_path, copy_bool, copy_data, copy_uint, get_bool, get_uint, merge
from .request import add_common_tags, add_local_policy_tags, apply_restore_request_rules

_logger = logging.getLogger("tatsu")

_UINT32_MASK = 0xFFFFFFFF
_KEY_LIMIT = 63


def _fail(message: str) -> TSSError:
    _logger.error("ERROR: %s", message)
    return TSSError(message)


def _manifest_of(parameters: Any, caller: str) -> Mapping[str, Any]:
    manifest = access_path(parameters, "Manifest")
    if not isinstance(manifest, Mapping):
        raise _fail(f"{caller}: Unable to get restore manifest from parameters")
    return manifest


def _add_prefixed_components(
    request: MutableMapping[str, Any],
    manifest: Mapping[str, Any],
    parameters: Mapping[str, Any],
    prefix: str,
) -> None:
    """Copy manifest entries named with ``prefix``, applying their request rules."""
    for name, node in manifest.items():
        if not name.startswith(prefix):
            continue
        entry = copy.deepcopy(node)
        rules = access_path(entry, "Info", "RestoreRequestRules")
        if rules is not None:
            _logger.debug("DEBUG: Applying restore request rules for entry %s", name)
            apply_restore_request_rules(entry, parameters, rules)
        if isinstance(entry, MutableMapping):
            if get_bool(entry, "Trusted") and entry.get("Digest") is None:
                _logger.debug("DEBUG: No Digest data, using empty value for entry %s", name)
                entry["Digest"] = b""
            entry.pop("Info", None)
        request[name] = entry


def add_vinyl_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of an eUICC ticket request, then the overrides."""
    _manifest_of(parameters, "add_vinyl_tags")

    request["@BBTicket"] = True
    request["@eUICC,Ticket"] = True

    copy_bool(request, parameters, "eUICC,ApProductionMode", "ApProductionMode")
    copy_uint(request, parameters, "eUICC,ChipID")
    copy_data(request, parameters, "eUICC,EID")
    copy_data(request, parameters, "eUICC,RootKeyIdentifier")

    for component in ("eUICC,Gold", "eUICC,Main"):
        if request.get(component) is not None:
            continue
        source = access_path(parameters, "Manifest", component)
        if source is not None:
            entry: dict[str, Any] = {}
            copy_data(entry, source, "Digest")
            request[component] = entry

    for nonce_key, component in (("EUICCGoldNonce", "eUICC,Gold"), ("EUICCMainNonce", "eUICC,Main")):
        nonce = parameters.get(nonce_key)
        if nonce is None:
            continue
        target = request.get(component)
        if isinstance(target, MutableMapping):
            target["Nonce"] = copy.deepcopy(nonce)

    merge(request, overrides)


def add_rose_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a Rap ticket request, then the overrides."""
    manifest = _manifest_of(parameters, "add_rose_tags")

    request["@BBTicket"] = True
    request["@Rap,Ticket"] = True

    copy_uint(request, parameters, "Rap,BoardID")
    copy_uint(request, parameters, "Rap,ChipID")
    copy_uint(request, parameters, "Rap,ECID")
    copy_data(request, parameters, "Rap,Nonce")
    copy_bool(request, parameters, "Rap,ProductionMode")
    copy_uint(request, parameters, "Rap,SecurityDomain")
    copy_bool(request, parameters, "Rap,SecurityMode")
    copy_data(request, parameters, "Rap,FdrRootCaDigest")

    _add_prefixed_components(request, manifest, parameters, "Rap,")
    merge(request, overrides)


def add_veridian_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a BMU ticket request, then the overrides."""
    manifest = _manifest_of(parameters, "add_veridian_tags")

    request["@BBTicket"] = True
    request["@BMU,Ticket"] = True

    copy_uint(request, parameters, "BMU,BoardID")
    copy_uint(request, parameters, "BMU,ChipID", "ChipID")
    copy_data(request, parameters, "BMU,Nonce", "Nonce")
    copy_bool(request, parameters, "BMU,ProductionMode", "ProductionMode")
    copy_uint(request, parameters, "BMU,UniqueID", "UniqueID")

    _add_prefixed_components(request, manifest, parameters, "BMU,")
    merge(request, overrides)


def add_tcon_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a Baobab ticket request, then the overrides."""
    manifest = _manifest_of(parameters, "add_tcon_tags")

    request["@BBTicket"] = True
    request["@Baobab,Ticket"] = True

    copy_uint(request, parameters, "Baobab,BoardID")
    copy_uint(request, parameters, "Baobab,ChipID")
    copy_data(request, parameters, "Baobab,ECID")
    copy_uint(request, parameters, "Baobab,Life")
    copy_uint(request, parameters, "Baobab,ManifestEpoch")
    copy_bool(request, parameters, "Baobab,ProductionMode")
    copy_uint(request, parameters, "Baobab,SecurityDomain")
    copy_data(request, parameters, "Baobab,UpdateNonce")

    is_prod = get_bool(parameters, "Baobab,ProductionMode")

    for name, node in manifest.items():
        if not name.startswith("Baobab,"):
            continue
        entry = copy.deepcopy(node)
        if isinstance(entry, MutableMapping):
            entry.pop("Info", None)
            entry["EPRO"] = is_prod
        request[name] = entry

    merge(request, overrides)


def add_timer_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a timer ticket request, then the overrides."""
    caller = "add_timer_tags"
    manifest = _manifest_of(parameters, caller)

    request["@BBTicket"] = True

    ticket_name = parameters.get("TicketName")
    if not isinstance(ticket_name, str):
        raise _fail(f"{caller}: Missing TicketName")
    request[f"@{ticket_name}"[:_KEY_LIMIT]] = True

    tag = get_uint(parameters, "TagNumber") & _UINT32_MASK

    copy_uint(request, parameters, f"Timer,BoardID,{tag}")
    copy_uint(request, parameters, f"Timer,ChipID,{tag}")
    copy_uint(request, parameters, f"Timer,SecurityDomain,{tag}")
    copy_bool(request, parameters, f"Timer,SecurityMode,{tag}")
    copy_bool(request, parameters, f"Timer,ProductionMode,{tag}")
    copy_uint(request, parameters, f"Timer,ECID,{tag}")
    copy_data(request, parameters, f"Timer,Nonce,{tag}")

    _add_prefixed_components(request, manifest, parameters, "Timer,")
    merge(request, overrides)


def add_cryptex_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a Cryptex1 or Cryptex1 local policy request, then the overrides."""
    add_common_tags(request, parameters)

    if parameters.get("Ap,LocalPolicy") is not None:
        # A failing local policy step leaves what it added and goes on.
        with contextlib.suppress(TSSError):
            add_local_policy_tags(request, parameters)
        copy_data(request, parameters, "Ap,NextStageCryptex1IM4MHash")
    else:
        request["@Cryptex1,Ticket"] = True
        copy_bool(request, parameters, "ApSecurityMode")
        copy_bool(request, parameters, "ApProductionMode")
        for key, value in parameters.items():
            if key.startswith("Cryptex1"):
                request[key] = copy.deepcopy(value)

    merge(request, overrides)