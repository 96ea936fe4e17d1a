"""Collect TSS parameters from a build identity of a build manifest."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, MutableMapping

from .errors import TSSError
from .plistdict import copy_bool, copy_data, copy_item, copy_string, copy_uint

_logger = logging.getLogger("tatsu")

_AP_STRINGS = (
    "Ap,OSLongVersion",
    "Ap,OSReleaseType",
    "Ap,ProductMarketingVersion",
    "Ap,ProductType",
    "Ap,SDKPlatform",
    "Ap,Target",
    "Ap,TargetType",
)

_OPTIONAL_BB_DATA = (
    "BbProvisioningManifestKeyHash",
    "BbActivationManifestKeyHash",
    "BbCalibrationManifestKeyHash",
    "BbFactoryActivationManifestKeyHash",
    "BbFDRSecurityKeyHash",
    "BbSkeyId",
)

_OPTIONAL_UINTS = (
    "SE,ChipID",
    "Savage,ChipID",
    "Savage,PatchEpoch",
    "Yonkers,BoardID",
    "Yonkers,ChipID",
    "Yonkers,PatchEpoch",
    "Rap,BoardID",
    "Rap,ChipID",
    "Rap,SecurityDomain",
    "Baobab,BoardID",
    "Baobab,ChipID",
    "Baobab,ManifestEpoch",
    "Baobab,SecurityDomain",
    "eUICC,ChipID",
    "NeRDEpoch",
)

_TIMER_UINTS = (
    "Timer,BoardID,1",
    "Timer,BoardID,2",
    "Timer,ChipID,1",
    "Timer,ChipID,2",
    "Timer,SecurityDomain,1",
    "Timer,SecurityDomain,2",
)

_PASSTHROUGH_ITEMS = (
    "Cryptex1,ChipID",
    "Cryptex1,Type",
    "Cryptex1,SubType",
    "Cryptex1,ProductClass",
    "Cryptex1,UseProductClass",
    "Cryptex1,NonceDomain",
    "Cryptex1,Version",
    "Cryptex1,PreauthorizationVersion",
    "Cryptex1,FakeRoot",
    "Cryptex1,SystemOS",
    "Cryptex1,SystemVolume",
    "Cryptex1,SystemTrustCache",
    "Cryptex1,AppOS",
    "Cryptex1,AppVolume",
    "Cryptex1,AppTrustCache",
    "Cryptex1,MobileAssetBrainOS",
    "Cryptex1,MobileAssetBrainVolume",
    "Cryptex1,MobileAssetBrainTrustCache",
    "USBPortController1,BoardID",
    "USBPortController1,ChipID",
    "USBPortController1,SecurityDomain",
)


def _fail(message: str) -> TSSError:
    _logger.error("ERROR: %s", message)
    return TSSError(message)


def add_from_manifest(
    parameters: MutableMapping[str, Any],
    build_identity: Mapping[str, Any],
    include_manifest: bool = True,
) -> None:
    """Copy the values a TSS request needs from ``build_identity`` into ``parameters``.

    Raises TSSError when UniqueBuildID, ApChipID or ApBoardID is missing, or
    when ``include_manifest`` is set and the identity has no Manifest dictionary.
    """
    if not copy_data(parameters, build_identity, "UniqueBuildID"):
        raise _fail("Unable to find UniqueBuildID node")

    for key in _AP_STRINGS:
        copy_string(parameters, build_identity, key)

    if not copy_uint(parameters, build_identity, "ApChipID"):
        raise _fail("Unable to find ApChipID node")
    if not copy_uint(parameters, build_identity, "ApBoardID"):
        raise _fail("Unable to find ApBoardID node")

    copy_uint(parameters, build_identity, "ApSecurityDomain")
    copy_uint(parameters, build_identity, "BMU,BoardID")
    copy_uint(parameters, build_identity, "BMU,ChipID")

    if not copy_uint(parameters, build_identity, "BbChipID"):
        _logger.debug("NOTE: Unable to find BbChipID node")
    for key in _OPTIONAL_BB_DATA:
        if not copy_data(parameters, build_identity, key):
            _logger.debug("NOTE: Unable to find %s node", key)

    for key in _OPTIONAL_UINTS:
        copy_uint(parameters, build_identity, key)
    copy_data(parameters, build_identity, "PearlCertificationRootPub")
    copy_bool(parameters, build_identity, "AllowNeRDBoot")
    if parameters.get("NeRDEpoch") is not None:
        parameters["PermitNeRDPivot"] = b""

    for key in _TIMER_UINTS:
        copy_uint(parameters, build_identity, key)
    for key in _PASSTHROUGH_ITEMS:
        copy_item(parameters, build_identity, key)

    info = build_identity.get("Info")
    if info is not None:
        copy_bool(parameters, info, "RequiresUIDMode")

    if include_manifest:
        manifest = build_identity.get("Manifest")
        if not isinstance(manifest, Mapping):
            raise _fail("Unable to find Manifest node")
        parameters["Manifest"] = copy.deepcopy(manifest)