# kvcache

An in-memory key-value cache server. Its data is kept in a hash table that
grows by moving entries to a larger table a little at a time, so no single
request pays for rebuilding the whole table. Clients talk to it over TCP with
a simple length-prefixed binary protocol.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running the server

```
kvcache-server [--host HOST] [--port PORT]
```

By default it listens on `::` (all addresses) at port 1234. One thread
serves every client, using the `selectors` module; requests that arrive back
to back on one connection are answered in order. Progress (new clients,
closed connections, bad requests) is logged through `logging` at INFO level.
Press Ctrl-C to stop it.

## The demonstration client

```
kvcache-client [--host HOST] [--port PORT]
```

It connects to `::1` port 1234 by default, sends a fixed batch of five raw
messages (`hello1`, `hello2`, `hello3`, one of 32 MiB of `z`, `hello5`) on
one connection, then reads frames back and prints each one as
`Length : <n> data <text>`. If the server closes the connection it prints
`EOF`. The messages are not encoded as commands, so the server answers the
first one and then closes the connection as a malformed request.

The functions it is built from can be used directly:

* `kvcache.client.send_request(sock, payload)` sends one length-prefixed frame.
* `kvcache.client.read_response(sock)` reads one frame and returns its body;
  it raises `EOFError` if the connection closes early and
  `kvcache.protocol.ProtocolError` if the announced length is over 32 MiB.

## Commands

A request is a list of byte strings:

| Command             | Effect                                         |
|---------------------|------------------------------------------------|
| `get <key>`         | returns the value, or status NX if absent      |
| `set <key> <value>` | stores the value, replacing any previous one   |
| `del <key>`         | removes the key (status OK whether or not present) |

Any other request gets status ERR.

## Wire format

All integers are 32-bit little-endian.

* A frame is a length followed by that many bytes. A frame announcing more
  than 32 MiB makes the server close the connection.
* A request body is an argument count followed by each argument as a length
  and its bytes. A body with more than 200,000 arguments, a truncated body,
  or bytes left over is rejected and the connection is closed.
* For every request the server first sends back a frame holding up to the
  first 100 bytes of the request body, then the response frame.
* A response body is a status (`0` OK, `1` ERR, `2` NX) followed by the data.

## Using it as a library

```python
from kvcache.store import KeyValueStore
from kvcache.protocol import Status, encode_request, parse_request

store = KeyValueStore()
store.set(b"name", b"value")
print(store.get(b"name"))           # b'value'
print(store.delete(b"name"))        # True

response = store.execute([b"get", b"missing"])
print(response.status is Status.NX) # True

payload = encode_request([b"set", b"k", b"v"])
print(parse_request(payload))       # [b'set', b'k', b'v']
```

`kvcache.protocol` also provides `frame(payload)`,
`encode_response(status, data)` and `str_hash(data)`, the 32-bit hash used
for keys. Keys and values may be given as `bytes` or `str`.

`kvcache.server.Server(host, port, store)` can be run in your own program:
call `serve_forever()`, and `close()` (or use it as a context manager) to
stop it; its `address` property gives the bound host and port.

`kvcache.hashtable.HMap` is the underlying table. Subclass `HNode` for your
entries, set `hcode`, and use `insert(node)`, `lookup(key, eq)`,
`delete(key, eq)` and `clear()`; `len()` and iteration work as expected.
`insert` does not check for duplicates.

## What it does not do

Data lives only in the server's memory: there is no persistence, expiry or
eviction. The command-line client only sends its fixed demonstration batch;
there is no command for issuing `get`, `set` or `del` from the shell.