import logging

import pytest

from tatsu.errors import TSSError, get_debug_level, set_debug_level


@pytest.fixture(autouse=True)
def reset_level():
    yield
    set_debug_level(0)


def test_debug_level_round_trip():
    set_debug_level(2)
    assert get_debug_level() == 2
    set_debug_level(0)
    assert get_debug_level() == 0


def test_level_zero_is_silent(capsys):
    set_debug_level(0)
    logging.getLogger("tatsu.request").error("quiet failure")
    assert capsys.readouterr().err == ""


def test_level_one_shows_errors_but_not_debug(capsys):
    set_debug_level(1)
    log = logging.getLogger("tatsu.request")
    log.error("visible failure")
    log.debug("hidden detail")
    err = capsys.readouterr().err
    assert "visible failure" in err
    assert "hidden detail" not in err


def test_level_two_shows_debug(capsys):
    set_debug_level(2)
    logging.getLogger("tatsu.client").debug("detail shown")
    assert "detail shown" in capsys.readouterr().err


def test_tss_error_carries_status():
    err = TSSError("request failed", status=94)
    assert err.status == 94
    assert str(err) == "request failed"


def test_tss_error_status_defaults_to_none():
    err = TSSError("missing parameter")
    assert err.status is None
    assert str(err) == "missing parameter"