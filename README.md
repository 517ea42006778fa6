# legacyconnect

Asyncio building blocks for opening client connections to HTTP servers.
The package has no dependencies outside the standard library.

## Modules

- **`legacyconnect.connected`** holds the connection metadata types.
  - `Connected` describes an established transport: whether it goes through a
    proxy (`proxy()`, `is_proxied()`) and whether HTTP/2 was negotiated
    (`negotiated_h2()`, `is_negotiated_h2()`). It can be poisoned so a pool
    does not reuse it (`poison()`, `is_poisoned()`).
  - `Connected` also carries typed "extra" values (`extra()`).
    `get_extras()` copies them into an `Extensions` map. That map holds one
    value per exact type, and a later value of the same type wins.
  - `copy()` returns a copy that shares the same poison flag.
  - `Connection` is the abstract base for transports. Its one method,
    `connected()`, returns a `Connected`.
- **`legacyconnect.capture`** captures the metadata of the connection used for
  a request.
  - `capture_connection(request)` takes an `Extensions` map, or any object with
    an `extensions` attribute. It stores the sending half in that map and
    returns a `CaptureConnection`.
  - Read the result straight away with `connection_metadata()`, or await
    `wait_for_connection_metadata()`.
  - The wait returns `None` if the sending half, a
    `CaptureConnectionExtension`, is closed without a connection being set.
  - `new_capture_pair()` creates both halves directly.
- **`legacyconnect.dns`** does name resolution.
  - `Name` is a host name to resolve. `SocketAddr` is an IP address with a
    port. `SocketAddrs` is an ordered address list.
  - `SocketAddrs.try_parse()` recognises IP literals.
  - `split_by_preference()` divides a list into preferred and fallback
    address families.
  - `GaiResolver` runs `getaddrinfo` through the event loop's executor.
  - `resolve(resolver, name)` accepts any object with a `resolve` method, or
    any callable. The resolver may be synchronous or asynchronous.
- **`legacyconnect.connect_config`** holds settings and helpers.
  - `ConnectorConfig` holds the connector settings and `TcpKeepaliveConfig`
    the keep-alive settings.
  - `ConnectError` is the error raised while connecting. `HttpInfo` holds a
    connection's remote and local addresses.
  - `get_host_port()` works out the host and port to connect to for a URI.
  - `set_port()` applies a URI's port to a resolved address.
- **`legacyconnect.tcp`** opens sockets.
  - `open_socket()` creates and sets up a socket, and `connect_addr()`
    connects it.
  - `ConnectingTcpRemote` tries addresses one after another, sharing the
    connect timeout evenly between them.
  - `ConnectingTcp` starts the preferred family first. After the happy-eyeballs
    delay it races the fallback family against it.
  - `TcpConnection` wraps the connected socket in asyncio streams.
- **`legacyconnect.connector`** provides `HttpConnector`.
  - It resolves a URI's host and connects over TCP.
  - IP-literal hosts are connected to directly, without a lookup.

## Usage

```python
import asyncio

from legacyconnect.connected import Extensions
from legacyconnect.connect_config import HttpInfo
from legacyconnect.connector import HttpConnector


async def main():
    connector = HttpConnector()
    connector.set_connect_timeout(5.0)
    connector.set_nodelay(True)

    async with await connector.connect("http://127.0.0.1:8080/") as conn:
        extensions = Extensions()
        conn.connected().get_extras(extensions)
        print(extensions.get(HttpInfo))
        conn.writer.write(b"GET / HTTP/1.1\r\nHost: 127.0.0.1\r\n\r\n")
        await conn.writer.drain()
        print(await conn.reader.readline())


asyncio.run(main())
```

A `TcpConnection` is closed with `await conn.close()` or by using it as an
async context manager. Its streams are `conn.reader` and `conn.writer`.

### Connector options

- **Durations.** They are given in seconds as numbers or as
  `datetime.timedelta`. The settings that take one are:
  - `set_connect_timeout`
  - `set_happy_eyeballs_timeout`, which defaults to 0.3 seconds; `None`
    disables the parallel attempt
  - `set_keepalive`
  - `set_keepalive_interval`
  - `set_tcp_user_timeout`
- **Other socket options.** `set_keepalive_retries`, `set_nodelay`,
  `set_send_buffer_size`, `set_recv_buffer_size`, `set_reuse_address` and
  `set_interface`.
- **Local addresses.** `set_local_address` sets one address and
  `set_local_addresses` sets one IPv4 and one IPv6 address. When only one
  local family is configured, only destination addresses of that family are
  tried.
- **Copies.** Setters replace the configuration, so a `copy.copy()` of a
  connector taken earlier keeps its settings.

By default the connector only accepts `http` URIs. Call
`connector.enforce_http(False)` to allow other schemes. A URI with no scheme
is still rejected. Without an explicit port, `https` URIs use 443 and others
use 80.

Every failure is raised as `ConnectError`, and its `msg` attribute names the
step that failed:

- `"invalid URL, scheme is not http"`
- `"invalid URL, scheme is missing"`
- `"invalid URL, host is missing"`
- `"dns error"`
- `"tcp connect error"`

## Capturing connection metadata

```python
from legacyconnect.capture import capture_connection, new_capture_pair
from legacyconnect.connected import Connected, Extensions

extensions = Extensions()
capture = capture_connection(extensions)
print(capture.connection_metadata())  # None until a connection is set

tx, rx = new_capture_pair()
tx.set(Connected().proxy(True))
print(rx.connection_metadata().is_proxied())  # True
```

## What this package does not do

It opens and describes connections only. It does not do any of the following:

- write or parse HTTP messages
- keep a connection pool
- perform TLS
- provide an HTTP client, server or command-line tool

## Running the tests

```
pip install -e .[test]
pytest
```