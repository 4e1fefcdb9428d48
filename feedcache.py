# feedcache.py
import base64
import hashlib
import json
import threading
import time


def make_etag(payload) -> str:
    body = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    digest = base64.b64encode(hashlib.sha1(body).digest()).decode("ascii")
    return f'W/"mrr:{digest}"'


class FeedCache:
    """One-entry in-memory cache with a fixed time-to-live, shared per process."""

    def __init__(self, ttl_seconds: float = 5, clock=time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entry = None  # (expires_at, payload, etag)

    def get(self):
        with self._lock:
            if self._entry is None:
                return None
            expires_at, payload, etag = self._entry
            if self._clock() >= expires_at:
                self._entry = None
                return None
            return payload, etag

    def put(self, payload):
        etag = make_etag(payload)
        with self._lock:
            self._entry = (self._clock() + self.ttl, payload, etag)
        return payload, etag

    def invalidate(self):
        with self._lock:
            self._entry = None

    def get_or_build(self, builder):
        cached = self.get()
        if cached is not None:
            return cached
        return self.put(builder())
