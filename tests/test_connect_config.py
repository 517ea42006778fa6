import socket
from urllib.parse import urlsplit

import pytest

from legacyconnect.connect_config import (
    ConnectError,
    ConnectorConfig,
    HttpInfo,
    TcpKeepaliveConfig,
    get_host_port,
    set_port,
)
from legacyconnect.dns import SocketAddr


def test_errors_enforce_http():
    with pytest.raises(ConnectError) as info:
        get_host_port(ConnectorConfig(), "https://example.domain/foo/bar?baz")
    assert info.value.msg == "invalid URL, scheme is not http"


def test_errors_missing_scheme():
    config = ConnectorConfig(enforce_http=False)
    with pytest.raises(ConnectError) as info:
        get_host_port(config, "example.domain")
    assert info.value.msg == "invalid URL, scheme is missing"


def test_errors_missing_host():
    with pytest.raises(ConnectError) as info:
        get_host_port(ConnectorConfig(), "http://")
    assert info.value.msg == "invalid URL, host is missing"


def test_default_ports():
    assert get_host_port(ConnectorConfig(), "http://example.com/x") == ("example.com", 80)
    config = ConnectorConfig(enforce_http=False)
    assert get_host_port(config, "https://example.com") == ("example.com", 443)


def test_explicit_port_and_ipv6_host():
    assert get_host_port(ConnectorConfig(), "http://[::1]:8080/") == ("::1", 8080)
    assert get_host_port(ConnectorConfig(), urlsplit("http://127.0.0.1:3000")) == (
        "127.0.0.1",
        3000,
    )


def test_invalid_port_rejected():
    with pytest.raises(ValueError):
        get_host_port(ConnectorConfig(), "http://example.com:99999/")


def test_default_config_values():
    config = ConnectorConfig()
    assert config.enforce_http is True
    assert config.happy_eyeballs_timeout == 0.3
    assert config.connect_timeout is None
    assert config.tcp_keepalive_config.socket_options() is None


def test_no_tcp_keepalive_config():
    assert TcpKeepaliveConfig().socket_options() is None


def test_tcp_keepalive_time_config():
    options = TcpKeepaliveConfig(time=60).socket_options()
    assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options
    idle = getattr(socket, "TCP_KEEPIDLE", None) or getattr(socket, "TCP_KEEPALIVE")
    assert (socket.IPPROTO_TCP, idle, 60) in options


def test_tcp_keepalive_interval_config():
    options = TcpKeepaliveConfig(interval=1).socket_options()
    assert (socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 1) in options


def test_tcp_keepalive_retries_config():
    options = TcpKeepaliveConfig(retries=3).socket_options()
    assert (socket.IPPROTO_TCP, socket.TCP_KEEPCNT, 3) in options


def test_set_port():
    addr = set_port(SocketAddr("0.0.0.0", 6881), 42, True)
    assert addr.port == 42

    addr = set_port(SocketAddr("0.0.0.0", 6881), 443, False)
    assert addr.port == 6881

    addr = set_port(SocketAddr("0.0.0.0", 0), 443, False)
    assert addr.port == 443


def test_connect_error_display():
    err = ConnectError.dns(OSError("lookup failed"))
    assert err.msg == "dns error"
    assert str(err) == "dns error: lookup failed"
    assert isinstance(err.__cause__, OSError)
    assert str(ConnectError("tcp connect error")) == "tcp connect error"
    assert repr(ConnectError("plain")) == "'plain'"


def test_http_info_holds_addresses():
    remote = SocketAddr("127.0.0.1", 80)
    local = SocketAddr("127.0.0.1", 50000)
    info = HttpInfo(remote_addr=remote, local_addr=local)
    assert info.remote_addr == remote
    assert info.local_addr.port == 50000