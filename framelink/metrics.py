"""Thread-safe traffic counters for one or more adapters."""

import threading
import time


class AdapterMetrics:
    """Tracks frame and byte counts, pauses and failures."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frames_in = 0
        self._frames_out = 0
        self._bytes_in = 0
        self._bytes_out = 0
        self._pauses = 0
        self._framing_errors = 0
        self._send_failures = 0
        self._connections = 0
        self._active_connections = 0
        self._start_time = time.monotonic()

    def record_frame_in(self, size: int):
        with self._lock:
            self._frames_in += 1
            self._bytes_in += size

    def record_frame_out(self, size: int):
        with self._lock:
            self._frames_out += 1
            self._bytes_out += size

    def record_pause(self):
        with self._lock:
            self._pauses += 1

    def record_framing_error(self):
        with self._lock:
            self._framing_errors += 1

    def record_send_failure(self):
        with self._lock:
            self._send_failures += 1

    def record_connection(self):
        with self._lock:
            self._connections += 1
            self._active_connections += 1

    def record_disconnection(self):
        with self._lock:
            self._active_connections -= 1

    def snapshot(self) -> dict:
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            return {
                "frames_in": self._frames_in,
                "frames_out": self._frames_out,
                "bytes_in": self._bytes_in,
                "bytes_out": self._bytes_out,
                "pauses": self._pauses,
                "framing_errors": self._framing_errors,
                "send_failures": self._send_failures,
                "total_connections": self._connections,
                "active_connections": self._active_connections,
                "elapsed_seconds": round(elapsed, 1),
                "frames_in_per_sec": round(
                    self._frames_in / elapsed, 1
                ) if elapsed > 0 else 0,
            }
