"""Internal constants shared across the library."""

USER_AGENT = "pyreachable/0.1"

#: Key used by :class:`~pyreachable.memory.DefaultConnectionMemory`.
DEFAULT_STORAGE_KEY = "pyreachable.connection.state"
DEFAULT_STORAGE_FILENAME = "defaults.json"

# Captive-portal endpoint answering 200 to a plain HEAD when online.
DEFAULT_PROBE_URL = "https://captive.apple.com/hotspot-detect.html"
DEFAULT_PROBE_INTERVAL = 2.0
DEFAULT_PROBE_TIMEOUT = 3.0

DEFAULT_PATH_POLL_INTERVAL = 1.0

#: Notification posted on every accepted transition after initialization.
CONNECTION_STATE_DID_CHANGE = "connectionStateDidChange"
IS_CONNECTED_KEY = "is_connected"
