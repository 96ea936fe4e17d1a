"""Build TSS requests for baseband, secure element, Savage and Yonkers firmware."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, MutableMapping

from .errors import TSSError
from .plistdict import access_path, copy_bool, copy_data, copy_uint, get_bool, get_uint, merge

_logger = logging.getLogger("tatsu")

_UINT32_MASK = 0xFFFFFFFF
_BB_CHIP_WITH_PSI_CHOICE = 0x68
_BB_CERTS_WITHOUT_PSI2 = frozenset((0x26F3FACC, 0x5CF2EC4E, 0x8399785A))

_BASEBAND_DATA = (
    "BbProvisioningManifestKeyHash",
    "BbActivationManifestKeyHash",
    "BbCalibrationManifestKeyHash",
    "BbFactoryActivationManifestKeyHash",
    "BbFDRSecurityKeyHash",
    "BbSkeyId",
    "BbNonce",
)

_YONKERS_KEYS = (
    "Yonkers,AllowOfflineBoot",
    "Yonkers,BoardID",
    "Yonkers,ChipID",
    "Yonkers,ECID",
    "Yonkers,Nonce",
    "Yonkers,PatchEpoch",
    "Yonkers,ProductionMode",
    "Yonkers,ReadECKey",
    "Yonkers,ReadFWKey",
)


def _fail(message: str) -> TSSError:
    _logger.error("ERROR: %s", message)
    return TSSError(message)


def _manifest_of(parameters: Any, caller: str) -> Mapping[str, Any]:
    manifest = access_path(parameters, "Manifest")
    if not isinstance(manifest, Mapping):
        raise _fail(f"{caller}: Unable to get restore manifest from parameters")
    return manifest


def _without_info(node: Any) -> Any:
    entry = copy.deepcopy(node)
    if isinstance(entry, MutableMapping):
        entry.pop("Info", None)
    return entry


def _add_sep_digest(request: MutableMapping[str, Any], manifest: Mapping[str, Any]) -> None:
    digest = access_path(manifest, "SEP", "Digest")
    if digest is None:
        raise _fail("Unable to get SEP digest from manifest")
    request["SEP"] = {"Digest": copy.deepcopy(digest)}


def add_baseband_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a baseband ticket request, then the overrides."""
    request["@BBTicket"] = True

    copy_uint(request, parameters, "BbChipID")
    for key in _BASEBAND_DATA:
        copy_data(request, parameters, key)
    copy_uint(request, parameters, "BbGoldCertId")

    bb_chip_id = get_uint(request, "BbChipID")
    bb_cert_id = get_uint(request, "BbGoldCertId") & _UINT32_MASK

    if not copy_data(request, parameters, "BbSNUM"):
        raise _fail("Unable to find required BbSNUM in parameters")

    firmware = access_path(parameters, "Manifest", "BasebandFirmware")
    if not isinstance(firmware, Mapping):
        raise _fail("Unable to get BasebandFirmware node")
    bbfw = _without_info(dict(firmware))

    if bb_chip_id == _BB_CHIP_WITH_PSI_CHOICE:
        if bb_cert_id in _BB_CERTS_WITHOUT_PSI2:
            dropped = ("PSI2-PartialDigest", "RestorePSI2-PartialDigest")
        else:
            dropped = ("PSI-PartialDigest", "RestorePSI-PartialDigest")
        for key in dropped:
            bbfw.pop(key, None)

    request["BasebandFirmware"] = bbfw
    merge(request, overrides)


def add_se_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> None:
    """Add the tags of a secure element ticket request, then the overrides."""
    caller = "add_se_tags"
    manifest = _manifest_of(parameters, caller)

    request["@BBTicket"] = True

    if not copy_uint(request, parameters, "SE,ChipID"):
        raise _fail(f"{caller}: Unable to find required SE,ChipID in parameters")
    for key in ("SE,ID", "SE,Nonce", "SE,RootKeyIdentifier"):
        if not copy_data(request, parameters, key):
            raise _fail(f"{caller}: Unable to find required {key} in parameters")

    is_dev = get_bool(parameters, "SE,IsDev")
    if is_dev:
        dropped = ("ProductionCMAC", "ProductionUpdatePayloadHash")
    else:
        dropped = ("DevelopmentCMAC", "DevelopmentUpdatePayloadHash")

    for name, manifest_entry in manifest.items():
        if not isinstance(manifest_entry, Mapping):
            raise _fail("Unable to fetch BuildManifest entry")
        if not name.startswith("SE,"):
            continue
        entry = _without_info(dict(manifest_entry))
        for key in dropped:
            entry.pop(key, None)
        request[name] = entry

    merge(request, overrides)

    if request.get("@SE2,Ticket") is None and request.get("@SE,Ticket") is None:
        request["@SE,Ticket"] = True


def _savage_component(is_prod: bool, revision: Any) -> str:
    variant = "B0"
    if isinstance(revision, (bytes, bytearray)) and len(revision) > 0:
        first = revision[0]
        if ((first | 0x10) & 0xF0) == 0x30:
            variant = "B2"
        elif (first & 0xF0) == 0xA0:
            variant = "BA"
    return f"Savage,{variant}-{'Prod' if is_prod else 'Dev'}-Patch"


def add_savage_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> str:
    """Add the tags of a Savage ticket request and return the patch component's name."""
    caller = "add_savage_tags"
    manifest = _manifest_of(parameters, caller)

    request["@BBTicket"] = True
    request["@Savage,Ticket"] = True

    if not copy_data(request, parameters, "Savage,UID"):
        raise _fail(f"{caller}: Unable to find required Savage,UID in parameters")

    _add_sep_digest(request, manifest)

    for key in ("Savage,PatchEpoch", "Savage,ChipID"):
        if not copy_uint(request, parameters, key):
            raise _fail(f"{caller}: Unable to find required {key} in parameters")
    for key in ("Savage,AllowOfflineBoot", "Savage,ReadFWKey", "Savage,ProductionMode"):
        if not copy_bool(request, parameters, key):
            raise _fail(f"{caller}: Unable to find required {key} in parameters")

    is_prod = get_bool(request, "Savage,ProductionMode")
    comp_name = _savage_component(is_prod, parameters.get("Savage,Revision"))

    component = manifest.get(comp_name)
    if component is None:
        raise _fail(f"Unable to get {comp_name} entry from manifest")
    request[comp_name] = _without_info(component)

    if not copy_data(request, parameters, "Savage,Nonce"):
        raise _fail(f"{caller}: Unable to find required Savage,Nonce in parameters")
    if not copy_bool(request, parameters, "Savage,ReadECKey"):
        raise _fail(f"{caller}: Unable to find required Savage,ReadECKey in parameters")

    merge(request, overrides)
    return comp_name


def _yonkers_matches(node: Any, is_prod: bool, fab_revision: int) -> bool:
    if not isinstance(node, Mapping):
        return True
    epro = node.get("EPRO")
    if isinstance(epro, bool) and epro != is_prod:
        return False
    fab = node.get("FabRevision")
    if isinstance(fab, int) and not isinstance(fab, bool):
        if (fab & ((1 << 64) - 1)) != fab_revision:
            return False
    return True


def add_yonkers_tags(
    request: MutableMapping[str, Any],
    parameters: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> str:
    """Add the tags of a Yonkers ticket request and return the patch component's name."""
    caller = "add_yonkers_tags"
    manifest = _manifest_of(parameters, caller)

    request["@BBTicket"] = True
    request["@Yonkers,Ticket"] = True

    _add_sep_digest(request, manifest)

    for key in _YONKERS_KEYS:
        value = parameters.get(key)
        if value is None:
            _logger.error("ERROR: %s: Unable to find required %s in parameters", caller, key)
            continue
        request[key] = copy.deepcopy(value)

    is_prod = get_bool(parameters, "Yonkers,ProductionMode")
    fab_revision = get_uint(parameters, "Yonkers,FabRevision")

    match = next(
        (
            (name, node)
            for name, node in manifest.items()
            if name.startswith("Yonkers,") and _yonkers_matches(node, is_prod, fab_revision)
        ),
        None,
    )
    if match is None:
        mode = "Production" if is_prod else "Development"
        raise _fail(f"No Yonkers node for {mode}/{fab_revision}")

    comp_name, comp_node = match
    if comp_node is not None:
        request[comp_name] = _without_info(comp_node)

    merge(request, overrides)
    return comp_name