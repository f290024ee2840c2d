import pytest

from smoke_server import DEFAULT_NAME, DEFAULT_PORT, parse_args


def test_defaults():
    config = parse_args([])
    assert config.port == DEFAULT_PORT
    assert config.server_name == DEFAULT_NAME
    assert config.read_timeout == 10.0
    assert config.max_connections == 128


def test_zero_disables_timeout_and_ceiling():
    config = parse_args(["--read-timeout", "0", "--max-connections", "0"])
    assert config.read_timeout is None
    assert config.max_connections is None


def test_options_are_carried_into_config():
    config = parse_args(["--host", "127.0.0.1", "--port", "0", "--name", "Edge", "--read-timeout", "1.5"])
    assert (config.host, config.port, config.server_name, config.read_timeout) == ("127.0.0.1", 0, "Edge", 1.5)


@pytest.mark.parametrize("argv", [
    ["--read-timeout", "-1"],
    ["--read-timeout", "nan"],
    ["--max-connections", "-1"],
    ["--port", "-5"],
    ["--port", "70000"],
])
def test_invalid_values_are_rejected(argv, capsys):
    with pytest.raises(SystemExit) as exc:
        parse_args(argv)
    assert exc.value.code == 2
    assert "must" in capsys.readouterr().err
