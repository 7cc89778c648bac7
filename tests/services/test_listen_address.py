from __future__ import annotations

import pytest

from promreporter.core.errors import ListenAddressError
from promreporter.models.configuration import Configuration
from promreporter.services.listen_address import NO_SOCKET, resolve_listen_address


class _FixedResolver:
    def __init__(self, address: object) -> None:
        self.address = address
        self.calls = 0

    def resolve(self) -> object:
        self.calls += 1
        return self.address


class _FailingResolver:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def resolve(self) -> str:
        raise self.exc


def test_no_address_means_no_socket() -> None:
    resolved = resolve_listen_address(Configuration())
    assert resolved == NO_SOCKET
    assert resolved.bind is False
    assert resolved.address == ""


@pytest.mark.parametrize("blank", ["", "   ", "\t\n"])
def test_blank_static_address_means_no_socket(blank: str) -> None:
    assert resolve_listen_address(Configuration(listen_address=blank)).bind is False


def test_static_address_is_trimmed() -> None:
    resolved = resolve_listen_address(Configuration(listen_address="  0.0.0.0:9090 "))
    assert resolved.address == "0.0.0.0:9090"
    assert resolved.bind is True


def test_dynamic_wins_over_static() -> None:
    strategy = _FixedResolver("127.0.0.1:7000")
    config = Configuration(listen_address="0.0.0.0:9090", dynamic_listen_address=strategy)

    resolved = resolve_listen_address(config)
    assert resolved.address == "127.0.0.1:7000"
    assert resolved.bind is True
    assert strategy.calls == 1


def test_dynamic_failure_does_not_fall_back_to_static() -> None:
    config = Configuration(
        listen_address="0.0.0.0:9090",
        dynamic_listen_address=_FailingResolver(ListenAddressError("PORT is not set")),
    )
    with pytest.raises(ListenAddressError, match="PORT is not set"):
        resolve_listen_address(config)


def test_dynamic_failure_of_other_type_is_wrapped() -> None:
    original = RuntimeError("discovery unavailable")
    config = Configuration(dynamic_listen_address=_FailingResolver(original))

    with pytest.raises(ListenAddressError, match="discovery unavailable") as excinfo:
        resolve_listen_address(config)
    assert excinfo.value.__cause__ is original


@pytest.mark.parametrize("result", [None, "", "  \t", 9090, b"127.0.0.1:9090"])
def test_dynamic_result_must_be_a_non_blank_string(result: object) -> None:
    config = Configuration(
        listen_address="0.0.0.0:9090",
        dynamic_listen_address=_FixedResolver(result),
    )
    with pytest.raises(ListenAddressError, match="expected host:port"):
        resolve_listen_address(config)


def test_dynamic_result_is_trimmed() -> None:
    config = Configuration(dynamic_listen_address=_FixedResolver(" 127.0.0.1:7000\n"))
    assert resolve_listen_address(config).address == "127.0.0.1:7000"


def test_dynamic_configuration_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_PORT", "9464")
    config = Configuration.from_mapping(
        {
            "listenAddress": "0.0.0.0:1",
            "dynamicListenAddress": {
                "type": "environment",
                "envVarListenPort": "METRICS_PORT",
                "hostname": "127.0.0.1",
            },
        }
    )
    assert resolve_listen_address(config).address == "127.0.0.1:9464"
