import pytest

from asteria.client_cli import build_parser, main, parse_toggle_key
from asteria.keys import KeyCode


def test_parse_hex_toggle_key():
    assert parse_toggle_key("0x1D") == KeyCode.KEY_LEFTCTRL
    assert parse_toggle_key("0x1d") == KeyCode.KEY_LEFTCTRL


def test_parse_decimal_toggle_key():
    assert parse_toggle_key(str(int(KeyCode.KEY_F12))) == KeyCode.KEY_F12


def test_hex_and_decimal_agree():
    assert parse_toggle_key("0x7e") == parse_toggle_key("126")


@pytest.mark.parametrize("text", ["0x", "0xZZ", "0x-1", "0x100000000"])
def test_invalid_hex_key(text):
    with pytest.raises(ValueError, match="Invalid hexadecimal key code"):
        parse_toggle_key(text)


@pytest.mark.parametrize("text", ["", "abc", "-1", "1.5", "4294967296"])
def test_invalid_decimal_key(text):
    with pytest.raises(ValueError, match="Invalid key code"):
        parse_toggle_key(text)


def test_start_default_toggle_key():
    args = build_parser().parse_args(["start"])
    assert args.command == "start"
    assert parse_toggle_key(args.toggle_key) == KeyCode.KEY_LEFTCTRL


def test_start_custom_toggle_key():
    args = build_parser().parse_args(["start", "--toggle-key", "0x58"])
    assert args.toggle_key == "0x58"


def test_ping_host_is_optional():
    parser = build_parser()
    assert parser.parse_args(["ping"]).host is None
    assert parser.parse_args(["ping", "localhost"]).host == "localhost"


def test_version_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args(["--version"])
    assert excinfo.value.code == 0
    assert "asteria-client" in capsys.readouterr().out


def test_main_without_command_returns_zero():
    assert main([]) == 0


def test_main_rejects_bad_toggle_key():
    assert main(["start", "--toggle-key", "bogus"]) == 1


def test_unknown_command_exits_with_error():
    with pytest.raises(SystemExit) as excinfo:
        main(["bogus"])
    assert excinfo.value.code == 2