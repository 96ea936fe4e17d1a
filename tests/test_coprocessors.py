import pytest

from tatsu.coprocessors import (
    add_baseband_tags,
    add_savage_tags,
    add_se_tags,
    add_yonkers_tags,
)
from tatsu.errors import TSSError


def _bb_params(chip_id, cert_id):
    return {
        "BbChipID": chip_id,
        "BbGoldCertId": cert_id,
        "BbSNUM": b"\x01\x02",
        "BbNonce": b"nonce",
        "Manifest": {
            "BasebandFirmware": {
                "Info": {"Path": "bbfw.zip"},
                "PSI-PartialDigest": b"psi",
                "PSI2-PartialDigest": b"psi2",
                "RestorePSI-PartialDigest": b"rpsi",
                "RestorePSI2-PartialDigest": b"rpsi2",
            }
        },
    }


def test_baseband_known_cert_drops_psi2():
    request = {}
    add_baseband_tags(request, _bb_params(0x68, 0x26F3FACC))
    fw = request["BasebandFirmware"]
    assert request["@BBTicket"] is True
    assert "Info" not in fw
    assert "PSI2-PartialDigest" not in fw
    assert "RestorePSI2-PartialDigest" not in fw
    assert fw["PSI-PartialDigest"] == b"psi"
    assert request["BbNonce"] == b"nonce"


def test_baseband_other_cert_drops_psi():
    request = {}
    add_baseband_tags(request, _bb_params(0x68, 7))
    fw = request["BasebandFirmware"]
    assert "PSI-PartialDigest" not in fw
    assert "RestorePSI-PartialDigest" not in fw
    assert fw["PSI2-PartialDigest"] == b"psi2"


def test_baseband_other_chip_keeps_all_digests():
    request = {}
    params = _bb_params(0x50, 0x26F3FACC)
    add_baseband_tags(request, params)
    expected = {k: v for k, v in params["Manifest"]["BasebandFirmware"].items() if k != "Info"}
    assert request["BasebandFirmware"] == expected


def test_baseband_does_not_modify_manifest():
    params = _bb_params(0x68, 7)
    add_baseband_tags({}, params)
    assert "Info" in params["Manifest"]["BasebandFirmware"]
    assert "PSI-PartialDigest" in params["Manifest"]["BasebandFirmware"]


def test_baseband_requires_snum():
    params = _bb_params(0x68, 7)
    del params["BbSNUM"]
    with pytest.raises(TSSError, match="BbSNUM"):
        add_baseband_tags({}, params)


def test_baseband_requires_firmware_node():
    params = _bb_params(0x68, 7)
    params["Manifest"] = {}
    with pytest.raises(TSSError, match="BasebandFirmware"):
        add_baseband_tags({}, params)


def test_baseband_overrides_win():
    request = {}
    add_baseband_tags(request, _bb_params(0x68, 7), {"BbNonce": b"other"})
    assert request["BbNonce"] == b"other"


def _se_params(is_dev):
    entry = {
        "Info": {},
        "Digest": b"d",
        "ProductionCMAC": b"pc",
        "ProductionUpdatePayloadHash": b"ph",
        "DevelopmentCMAC": b"dc",
        "DevelopmentUpdatePayloadHash": b"dh",
    }
    return {
        "SE,ChipID": 1,
        "SE,ID": b"id",
        "SE,Nonce": b"n",
        "SE,RootKeyIdentifier": b"rk",
        "SE,IsDev": is_dev,
        "Manifest": {"SE,UpdatePayload": entry, "LLB": {"Digest": b"x"}},
    }


def test_se_development_keeps_development_keys():
    request = {}
    add_se_tags(request, _se_params(True))
    entry = request["SE,UpdatePayload"]
    assert set(entry) == {"Digest", "DevelopmentCMAC", "DevelopmentUpdatePayloadHash"}
    assert "LLB" not in request
    assert request["@SE,Ticket"] is True
    assert request["SE,ID"] == b"id"


def test_se_production_keeps_production_keys():
    request = {}
    add_se_tags(request, _se_params(False))
    entry = request["SE,UpdatePayload"]
    assert set(entry) == {"Digest", "ProductionCMAC", "ProductionUpdatePayloadHash"}


def test_se_ticket_override_suppresses_fallback():
    request = {}
    add_se_tags(request, _se_params(False), {"@SE2,Ticket": True})
    assert request["@SE2,Ticket"] is True
    assert "@SE,Ticket" not in request


@pytest.mark.parametrize("missing", ["SE,ChipID", "SE,ID", "SE,Nonce", "SE,RootKeyIdentifier"])
def test_se_required_parameters(missing):
    params = _se_params(False)
    del params[missing]
    with pytest.raises(TSSError, match=missing):
        add_se_tags({}, params)


def test_se_requires_manifest():
    with pytest.raises(TSSError, match="restore manifest"):
        add_se_tags({}, {"SE,ChipID": 1})


def test_se_rejects_non_dict_entry():
    params = _se_params(False)
    params["Manifest"]["Broken"] = b"x"
    with pytest.raises(TSSError, match="BuildManifest entry"):
        add_se_tags({}, params)


def _savage_params(production, revision=None):
    params = {
        "Savage,UID": b"uid",
        "Savage,PatchEpoch": 1,
        "Savage,ChipID": 2,
        "Savage,AllowOfflineBoot": False,
        "Savage,ReadFWKey": True,
        "Savage,ProductionMode": production,
        "Savage,Nonce": b"nonce",
        "Savage,ReadECKey": True,
        "Manifest": {
            "SEP": {"Digest": b"sep"},
            "Savage,B0-Prod-Patch": {"Info": {}, "Digest": b"b0p"},
            "Savage,B0-Dev-Patch": {"Info": {}, "Digest": b"b0d"},
            "Savage,B2-Prod-Patch": {"Info": {}, "Digest": b"b2p"},
            "Savage,BA-Dev-Patch": {"Info": {}, "Digest": b"bad"},
        },
    }
    if revision is not None:
        params["Savage,Revision"] = revision
    return params


@pytest.mark.parametrize(
    "production, revision, expected",
    [
        (True, None, "Savage,B0-Prod-Patch"),
        (False, None, "Savage,B0-Dev-Patch"),
        (True, b"\x20", "Savage,B2-Prod-Patch"),
        (True, b"\x30", "Savage,B2-Prod-Patch"),
        (False, b"\xa1", "Savage,BA-Dev-Patch"),
        (True, b"", "Savage,B0-Prod-Patch"),
    ],
)
def test_savage_component_selection(production, revision, expected):
    request = {}
    name = add_savage_tags(request, _savage_params(production, revision))
    assert name == expected
    assert "Info" not in request[name]
    assert request[name]["Digest"] == _savage_params(production)["Manifest"][expected]["Digest"]


def test_savage_request_tags():
    request = {}
    add_savage_tags(request, _savage_params(True))
    assert request["@BBTicket"] is True
    assert request["@Savage,Ticket"] is True
    assert request["SEP"] == {"Digest": b"sep"}
    assert request["Savage,Nonce"] == b"nonce"
    assert request["Savage,ReadECKey"] is True


def test_savage_missing_component():
    params = _savage_params(False, b"\x20")
    with pytest.raises(TSSError, match="Savage,B2-Dev-Patch"):
        add_savage_tags({}, params)


def test_savage_missing_sep():
    params = _savage_params(True)
    del params["Manifest"]["SEP"]
    with pytest.raises(TSSError, match="SEP digest"):
        add_savage_tags({}, params)


@pytest.mark.parametrize("missing", ["Savage,UID", "Savage,ChipID", "Savage,Nonce", "Savage,ReadECKey"])
def test_savage_required_parameters(missing):
    params = _savage_params(True)
    del params[missing]
    with pytest.raises(TSSError, match=missing):
        add_savage_tags({}, params)


def _yonkers_params(production, fab):
    return {
        "Yonkers,AllowOfflineBoot": False,
        "Yonkers,BoardID": 1,
        "Yonkers,ChipID": 2,
        "Yonkers,ECID": 3,
        "Yonkers,Nonce": b"n",
        "Yonkers,PatchEpoch": 4,
        "Yonkers,ProductionMode": production,
        "Yonkers,ReadECKey": True,
        "Yonkers,ReadFWKey": True,
        "Yonkers,FabRevision": fab,
        "Manifest": {
            "SEP": {"Digest": b"sep"},
            "Yonkers,SysTopPatch0": {"Info": {}, "EPRO": False, "FabRevision": 1},
            "Yonkers,SysTopPatch1": {"Info": {}, "EPRO": True, "FabRevision": 1},
            "Yonkers,SysTopPatch2": {"Info": {}, "EPRO": True, "FabRevision": 3},
        },
    }


def test_yonkers_selects_matching_patch():
    request = {}
    name = add_yonkers_tags(request, _yonkers_params(True, 3))
    assert name == "Yonkers,SysTopPatch2"
    assert request[name] == {"EPRO": True, "FabRevision": 3}
    assert request["@Yonkers,Ticket"] is True
    assert request["Yonkers,Nonce"] == b"n"


def test_yonkers_development_patch():
    request = {}
    name = add_yonkers_tags(request, _yonkers_params(False, 1))
    assert name == "Yonkers,SysTopPatch0"
    assert request[name]["EPRO"] is False


def test_yonkers_no_match_raises():
    with pytest.raises(TSSError, match="No Yonkers node"):
        add_yonkers_tags({}, _yonkers_params(False, 3))


def test_yonkers_missing_parameter_is_skipped():
    params = _yonkers_params(True, 1)
    del params["Yonkers,ECID"]
    request = {}
    name = add_yonkers_tags(request, params)
    assert name == "Yonkers,SysTopPatch1"
    assert "Yonkers,ECID" not in request


def test_yonkers_requires_sep_digest():
    params = _yonkers_params(True, 1)
    del params["Manifest"]["SEP"]
    with pytest.raises(TSSError, match="SEP digest"):
        add_yonkers_tags({}, params)