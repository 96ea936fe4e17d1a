import pytest

from tatsu.errors import TSSError
from tatsu.parameters import add_from_manifest


def _identity(**extra):
    identity = {
        "UniqueBuildID": b"\x01\x02\x03",
        "ApChipID": 0x8020,
        "ApBoardID": 0x0C,
        "Manifest": {"LLB": {"Digest": b"\xaa"}},
    }
    identity.update(extra)
    return identity


def test_copies_required_values():
    params = {}
    identity = _identity()
    add_from_manifest(params, identity, False)
    assert params["UniqueBuildID"] == identity["UniqueBuildID"]
    assert params["ApChipID"] == identity["ApChipID"]
    assert params["ApBoardID"] == identity["ApBoardID"]
    assert "Manifest" not in params


@pytest.mark.parametrize("missing", ["UniqueBuildID", "ApChipID", "ApBoardID"])
def test_missing_required_value_raises(missing):
    identity = _identity()
    del identity[missing]
    with pytest.raises(TSSError):
        add_from_manifest({}, identity, False)


def test_wrong_type_counts_as_missing():
    identity = _identity(ApChipID="not a number")
    with pytest.raises(TSSError):
        add_from_manifest({}, identity, False)


def test_optional_strings_and_uints():
    identity = _identity(**{"Ap,ProductType": "Phone1,1", "SE,ChipID": 44, "Ap,Target": 7})
    params = {}
    add_from_manifest(params, identity, False)
    assert params["Ap,ProductType"] == "Phone1,1"
    assert params["SE,ChipID"] == 44
    assert "Ap,Target" not in params


def test_nerd_epoch_adds_permit_pivot():
    params = {}
    add_from_manifest(params, _identity(NeRDEpoch=3), False)
    assert params["NeRDEpoch"] == 3
    assert params["PermitNeRDPivot"] == b""


def test_no_nerd_epoch_no_pivot():
    params = {}
    add_from_manifest(params, _identity(), False)
    assert "PermitNeRDPivot" not in params


def test_manifest_is_deep_copied():
    identity = _identity()
    params = {}
    add_from_manifest(params, identity, True)
    assert params["Manifest"] == identity["Manifest"]
    identity["Manifest"]["LLB"]["Digest"] = b"\xbb"
    assert params["Manifest"]["LLB"]["Digest"] == b"\xaa"


def test_manifest_required_when_included():
    identity = _identity()
    identity["Manifest"] = ["not", "a", "dict"]
    with pytest.raises(TSSError):
        add_from_manifest({}, identity, True)


def test_requires_uid_mode_from_info():
    params = {}
    add_from_manifest(params, _identity(Info={"RequiresUIDMode": True}), False)
    assert params["RequiresUIDMode"] is True


def test_cryptex_items_passed_through():
    value = {"nested": [1, 2]}
    params = {}
    add_from_manifest(params, _identity(**{"Cryptex1,Type": value}), False)
    assert params["Cryptex1,Type"] == value
    assert params["Cryptex1,Type"] is not value