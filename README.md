# asteria

Asteria carries keyboard and mouse events from one machine (the client) to
another (the server) over a plain TCP connection. The client reads Linux
evdev events from `/dev/input`. A toggle key switches relaying on and off.
While relaying is on, the client encodes each key press and release, pointer
movement, button click and wheel turn as a packet and sends it to the server.
The server decodes the packets and passes them to an input simulator.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration

Each side keeps a TOML file in the user configuration directory under
`asteria/`. The server uses `server.toml` and the client uses `client.toml`.
If the file is missing, it is created with these defaults the first time the
configuration is loaded:

```toml
[network]
host = "0.0.0.0"
port = 3100
```

`asteria.config` provides `NetworkConfig`, `ServerConfig`, `ClientConfig`,
`config_path`, `load_config` and `save_config`. `load_config` and
`save_config` accept an optional `base_dir` that replaces the user
configuration directory.

## Running the server

```
asteria-server start
```

The server listens on the configured host and port and handles each client
connection separately.

To test connectivity, run:

```
asteria-server ping [HOST]
```

This command connects to `HOST`, or to the configured host if none is given,
on the configured port and sends one ping packet.

## Running the client

```
asteria-client start --toggle-key 0x1D
```

`--toggle-key` accepts a key code in hexadecimal with a `0x` prefix or in
decimal. The default is Left Ctrl (`0x1D`). Press the toggle key once to
start relaying. Press it again to stop. The toggle key itself is never sent.

The client reads only the event devices that report keyboard keys or X/Y
axes. It skips devices whose names contain "virtual", "uinput" or "asteria".
It needs read access to those devices. The client connects to
`192.168.137.1` (`asteria.network.DEFAULT_SERVER_HOST`) on the configured
port. If sending fails, it tries to reconnect.

To send a single ping packet, run:

```
asteria-client ping
```

This command uses the host and port from `client.toml`. It accepts an
optional host argument, but only logs it and does not use it.

## Library use

The wire format is in `asteria.protocol`. Use `new_packet` and
`input_event_packet` to build packets and `Packet.encode` to serialise them.
`decode_packet` returns the packet and the number of bytes it used. It raises
`DecodeError` on incomplete or malformed data.

```python
from asteria.protocol import KeyPress, new_packet, decode_packet

packet = new_packet(KeyPress(key_code=30))
decoded, size = decode_packet(packet.encode())
assert decoded.message == KeyPress(key_code=30)
```

Other modules:

- `asteria.keys`: the `KeyCode` enum of Linux key codes, and `key_name`, which returns readable names for common keys.
- `asteria.simulator`: `InputSimulator` replays events on a backend. `linux_key_to_key` maps Linux key codes to key names.
- `asteria.capture`: `InputCapture`, `RelayState`, `RawEvent` and `parse_raw_events`, which read and convert evdev events.
- `asteria.server` and `asteria.network`: `InputServer` and `NetworkClient`.

## What it does not do

- The server does not inject input into its operating system. By default,
  `InputSimulator` uses `RecordingBackend`, which only stores each action in
  its `actions` list. To have input take effect, give `InputSimulator` a
  backend of your own that provides `key`, `button`, `move_mouse` and
  `scroll`.
- The client does not suppress local input while relaying. Devices are
  opened and tracked, but not grabbed exclusively, so the local machine still
  receives every event.