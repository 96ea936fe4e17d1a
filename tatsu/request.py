"""Build TSS requests for the application processor."""

from __future__ import annotations

import copy
import logging
import random
import sys
from typing import Any, Mapping, MutableMapping

from .errors import TSSError
from .plistdict import (
    access_path,
    copy_bool,
    copy_data,
    copy_item,
    copy_string,
    copy_uint,
    get_bool,
    merge,
    values_equal,
)

_logger = logging.getLogger("tatsu")

_AUTH_VERSION = "1033.0.6"
_GUID_CHARS = "ABCDEF0123456789"
_GUID_DASHES = frozenset((8, 13, 18, 23))

_CONDITION_SOURCES = {
    "ApRawProductionMode": "ApProductionMode",
    "ApCurrentProductionMode": "ApProductionMode",
    "ApRawSecurityMode": "ApSecurityMode",
    "ApRequiresImage4": "ApSupportsImg4",
    "ApDemotionPolicyOverride": "DemotionPolicy",
    "ApInRomDFU": "ApInRomDFU",
}

_FW_PAYLOAD_FLAGS = (
    "IsFirmwarePayload",
    "IsSecondaryFirmwarePayload",
    "IsFUDFirmware",
    "IsLoadedByiBoot",
    "IsEarlyAccessFirmware",
    "IsiBootEANFirmware",
    "IsiBootNonEssentialFirmware",
)

_RECOVERY_SKIPPED = frozenset((
    "BasebandFirmware", "SE,UpdatePayload", "BaseSystem", "ANS", "Ap,AudioBootChime",
    "Ap,CIO", "Ap,RestoreCIO", "Ap,RestoreTMU", "Ap,TMU", "Ap,rOSLogo1", "Ap,rOSLogo2",
    "AppleLogo", "DCP", "LLB", "RecoveryMode", "RestoreANS", "RestoreDCP",
    "RestoreDeviceTree", "RestoreKernelCache", "RestoreLogo", "RestoreRamDisk",
    "RestoreSEP", "SEP", "ftap", "ftsp", "iBEC", "iBSS", "rfta", "rfts", "Diags",
))

_AP_SKIPPED = frozenset((
    "BasebandFirmware", "SE,UpdatePayload", "BaseSystem", "Diags", "Ap,ExclaveOS",
))

_AP_STRINGS = (
    "Ap,OSLongVersion",
    "Ap,OSReleaseType",
    "Ap,ProductMarketingVersion",
    "Ap,ProductType",
    "Ap,SDKPlatform",
    "Ap,Target",
    "Ap,TargetType",
)


def _fail(message: str) -> TSSError:
    _logger.error("ERROR: %s", message)
    return TSSError(message)


def _generate_guid() -> str:
    return "".join(
        "-" if i in _GUID_DASHES else random.choice(_GUID_CHARS) for i in range(36)
    )


def new_request(overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Return a new TSS request holding host, client version and UUID tags."""
    windows = sys.platform == "win32"
    request: dict[str, Any] = {
        "@HostPlatformInfo": "windows" if windows else "mac",
        "@VersionInfo": ("libauthinstall_Win-" if windows else "libauthinstall-") + _AUTH_VERSION,
        "@UUID": _generate_guid(),
    }
    merge(request, overrides)
    return request


def _require_mode_flags(request: MutableMapping[str, Any], parameters: Any) -> None:
    for key in ("ApSecurityMode", "ApProductionMode"):
        if request.get(key) is None and not copy_bool(request, parameters, key):
            raise _fail(f"Unable to find required {key} in parameters")


def add_local_policy_tags(request: MutableMapping[str, Any], parameters: Mapping[str, Any]) -> None:
    """Add the tags of a local policy request; raise TSSError if a required one is missing."""
    request["@ApImg4Ticket"] = True

    if not copy_bool(request, parameters, "Ap,LocalBoot"):
        raise _fail("Unable to find required Ap,LocalBoot in parameters")
    if not copy_item(request, parameters, "Ap,LocalPolicy"):
        raise _fail("Unable to find required Ap,LocalPolicy in parameters")
    if not copy_data(request, parameters, "Ap,NextStageIM4MHash"):
        raise _fail("Unable to find required Ap,NextStageIM4MHash in parameters")

    copy_data(request, parameters, "Ap,RecoveryOSPolicyNonceHash")
    copy_data(request, parameters, "Ap,VolumeUUID")
    copy_uint(request, parameters, "ApECID")
    copy_uint(request, parameters, "ApChipID")
    copy_uint(request, parameters, "ApBoardID")
    copy_uint(request, parameters, "ApSecurityDomain")
    copy_data(request, parameters, "ApNonce")

    _require_mode_flags(request, parameters)


def add_ap_img4_tags(request: MutableMapping[str, Any], parameters: Mapping[str, Any] | None) -> None:
    """Add the tags asking for an IMG4 AP ticket; raise TSSError if a required one is missing."""
    if parameters is None:
        raise _fail("Missing required AP parameters")

    for key in _AP_STRINGS:
        copy_string(request, parameters, key)

    if not copy_data(request, parameters, "ApNonce"):
        raise _fail("Unable to find required ApNonce in parameters")

    request["@ApImg4Ticket"] = True
    _require_mode_flags(request, parameters)

    sep_source = None if parameters.get("SepNonce") is not None else "ApSepNonce"
    copy_data(request, parameters, "SepNonce", sep_source)
    copy_uint(request, parameters, "NeRDEpoch")
    copy_data(request, parameters, "PearlCertificationRootPub")
    copy_bool(request, parameters, "AllowNeRDBoot")
    copy_item(request, parameters, "PermitNeRDPivot")

    requires_uid_mode = get_bool(parameters, "RequiresUIDMode")
    if parameters.get("UID_MODE") is not None:
        copy_item(request, parameters, "UID_MODE")
    elif requires_uid_mode:
        request["UID_MODE"] = False

    if parameters.get("ApSikaFuse") is not None:
        copy_item(request, parameters, "Ap,SikaFuse", "ApSikaFuse")
    elif requires_uid_mode:
        # Only seen together with UID_MODE.
        request["Ap,SikaFuse"] = 0


def add_ap_img3_tags(request: MutableMapping[str, Any], parameters: Mapping[str, Any] | None) -> None:
    """Add the tags asking for an IMG3 AP ticket; raise TSSError if a required one is missing."""
    if parameters is None:
        raise _fail("Missing required AP parameters")

    if not copy_data(request, parameters, "ApNonce"):
        _logger.warning("WARNING: Unable to find ApNonce in parameters")

    request["@APTicket"] = True

    for key in ("ApBoardID", "ApChipID", "ApSecurityDomain"):
        if not copy_uint(request, parameters, key):
            raise _fail(f"Unable to find required {key} in request")
    if not copy_bool(request, parameters, "ApProductionMode"):
        raise _fail("Unable to find required ApProductionMode in parameters")


def add_common_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the device identification tags shared by all AP requests, then the overrides."""
    copy_uint(request, parameters, "ApECID")
    copy_data(request, parameters, "UniqueBuildID")
    copy_uint(request, parameters, "ApChipID")
    copy_uint(request, parameters, "ApBoardID")
    copy_uint(request, parameters, "ApSecurityDomain")
    merge(request, overrides)


def _conditions_hold(conditions: Any, parameters: Any) -> bool:
    if not isinstance(conditions, Mapping):
        return True
    for key, expected in conditions.items():
        source = _CONDITION_SOURCES.get(key)
        if source is None:
            _logger.warning(
                "WARNING: Unhandled condition '%s' while parsing RestoreRequestRules", key
            )
            return False
        actual = parameters.get(source) if isinstance(parameters, Mapping) else None
        if actual is None or not values_equal(expected, actual):
            return False
    return True


def apply_restore_request_rules(entry: Any, parameters: Mapping[str, Any], rules: Any) -> None:
    """Set the boolean actions of every rule whose conditions the parameters fulfil."""
    if not isinstance(entry, MutableMapping) or not isinstance(rules, list):
        return
    for rule in rules:
        rule_map = rule if isinstance(rule, Mapping) else {}
        if not _conditions_hold(rule_map.get("Conditions"), parameters):
            continue
        actions = rule_map.get("Actions")
        if not isinstance(actions, Mapping):
            continue
        for key, value in actions.items():
            if not isinstance(value, bool):
                continue
            entry.pop(key, None)
            _logger.debug("DEBUG: Adding %s=%s to TSS entry", key, "true" if value else "false")
            entry[key] = value


def is_fw_payload(info: Any) -> bool:
    """Tell whether a manifest Info dictionary describes a firmware payload."""
    return any(get_bool(info, flag) for flag in _FW_PAYLOAD_FLAGS)


def _manifest_of(parameters: Any) -> Mapping[str, Any]:
    manifest = access_path(parameters, "Manifest")
    if not isinstance(manifest, Mapping):
        raise _fail("Unable to find restore manifest")
    return manifest


def _prepare_entry(name: str, manifest_entry: Mapping[str, Any], parameters: Any) -> tuple[dict, bool]:
    """Copy an entry without Info and apply its rules; tell whether rules were present."""
    tss_entry = copy.deepcopy(dict(manifest_entry))
    tss_entry.pop("Info", None)
    rules = access_path(manifest_entry, "Info", "RestoreRequestRules")
    if rules is not None:
        _logger.debug("DEBUG: Applying restore request rules for entry %s", name)
        apply_restore_request_rules(tss_entry, parameters, rules)
    return tss_entry, rules is not None


def _ensure_digest(name: str, manifest_entry: Mapping[str, Any], tss_entry: dict, trusted: bool) -> None:
    if trusted and manifest_entry.get("Digest") is None:
        _logger.debug("DEBUG: No Digest data, using empty value for entry %s", name)
        tss_entry["Digest"] = b""


def _passes_fw_filter(name: str, parameters: Any, info: Any, trusted: bool) -> bool:
    if not get_bool(parameters, "_OnlyFWComponents"):
        return True
    if not trusted:
        _logger.debug("DEBUG: Skipping '%s' as it is not trusted", name)
        return False
    if not is_fw_payload(info):
        _logger.debug("DEBUG: Skipping '%s' as it is not a firmware payload", name)
        return False
    return True


def add_ap_recovery_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add manifest components needed for a recovery OS root ticket, then the overrides."""
    manifest = _manifest_of(parameters)
    for name, manifest_entry in manifest.items():
        if not isinstance(manifest_entry, Mapping):
            raise _fail("Unable to fetch BuildManifest entry")
        if name in _RECOVERY_SKIPPED:
            continue
        info = manifest_entry.get("Info")
        if info is None:
            continue
        trusted = get_bool(manifest_entry, "Trusted")
        if not _passes_fw_filter(name, parameters, info, trusted):
            continue
        tss_entry, _ = _prepare_entry(name, manifest_entry, parameters)
        _ensure_digest(name, manifest_entry, tss_entry, trusted)
        request[name] = tss_entry
    merge(request, overrides)


def add_ap_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the manifest components of an AP request, then the overrides."""
    manifest = _manifest_of(parameters)
    supports_img4 = get_bool(parameters, "ApSupportsImg4")
    for name, manifest_entry in manifest.items():
        if not isinstance(manifest_entry, Mapping):
            raise _fail("Unable to fetch BuildManifest entry")
        if name in _AP_SKIPPED:
            continue
        info = manifest_entry.get("Info")
        if info is None:
            continue
        trusted = get_bool(manifest_entry, "Trusted")
        if supports_img4 and access_path(info, "RestoreRequestRules") is None and not trusted:
            _logger.debug(
                "DEBUG: Skipping '%s' as it doesn't have RestoreRequestRules and is not Trusted",
                name,
            )
            continue
        if not _passes_fw_filter(name, parameters, info, trusted):
            continue
        if get_bool(info, "IsFTAB"):
            _logger.debug("DEBUG: Skipping FTAB component '%s'", name)
            continue

        tss_entry, had_rules = _prepare_entry(name, manifest_entry, parameters)
        if not had_rules and supports_img4:
            copy_bool(tss_entry, parameters, "EPRO", "ApProductionMode")
            copy_bool(tss_entry, parameters, "ESEC", "ApSecurityMode")
        _ensure_digest(name, manifest_entry, tss_entry, trusted)
        if not tss_entry:
            continue
        request[name] = tss_entry
    merge(request, overrides)