import logging
import time

logger = logging.getLogger(__name__)


class TTLCache:
    """Simple in-memory cache: { key: (expiry_ts, value) }.

    Keys are the handful of logical report names the dashboard polls, so
    entries are only ever dropped on expiry. Not shared between processes.
    """

    def __init__(self, default_ttl=10, clock=time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries = {}

    def get(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None
        expiry, value = entry
        if self._clock() >= expiry:
            self._entries.pop(key, None)
            return None
        logger.debug("cache hit: %s", key)
        return value

    def set(self, key, value, ttl=None):
        if ttl is None:
            ttl = self.default_ttl
        self._entries[key] = (self._clock() + ttl, value)

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)
