"""
Now Playing HTTP client for Stationcast.

Publishes NowPlayingState changes to an HTTP endpoint so a display can
highlight the active segment. Transport only: it sends whatever state it is
given and never raises into the playback path.

publish() only queues the event. A single background worker POSTs queued
events in order, so a slow or unreachable endpoint never holds up the
session thread or a caller of stop().
"""

import logging
import threading
import time
from queue import Queue
from typing import Any, Dict, Optional

import httpx

from stationcast.state.now_playing_state import NowPlayingState

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 32

_STOP = object()


class NowPlayingClient:
    """
    POSTs now-playing events as JSON from a background worker.

    Payload:
        {"event_type": "now_playing", "timestamp": <time.time()>,
         "station_id": ..., "state": {...} | null}

    Use publish() as a NowPlayingStateManager listener. Call close() to flush
    pending events and release the HTTP client.
    """

    def __init__(self, url: str, station_id=None, timeout: float = 2.0,
                 client: Optional[httpx.Client] = None,
                 max_pending: int = DEFAULT_MAX_PENDING):
        """
        Args:
            url: Endpoint to POST events to
            station_id: Station id included in every event
            timeout: Per-request timeout in seconds
            client: Optional preconfigured httpx.Client (tests inject a mock transport)
            max_pending: Events allowed to wait for the worker before new ones are dropped
        """
        self.url = url
        self.station_id = station_id
        self.timeout = timeout
        self.max_pending = max_pending
        self._client = client or httpx.Client(timeout=timeout)
        self._queue: Queue = Queue()
        self._closed = False
        self._close_lock = threading.Lock()

        # Suppress per-request INFO logs from httpx
        logging.getLogger("httpx").setLevel(logging.WARNING)

        self._worker = threading.Thread(target=self._send_loop, name="NowPlayingClient", daemon=True)
        self._worker.start()

    def _build_payload(self, state: Optional[NowPlayingState]) -> Dict[str, Any]:
        return {
            "event_type": "now_playing",
            "timestamp": time.time(),
            "station_id": self.station_id,
            "state": state.to_dict() if state is not None else None,
        }

    def publish(self, state: Optional[NowPlayingState]) -> bool:
        """
        Queue one state change for the worker. Never waits on the network.

        Returns:
            True if the event was queued, False if the client is closed or
            too many events are already pending
        """
        if self._closed:
            return False
        if self._queue.qsize() >= self.max_pending:
            logger.warning("[NOW_PLAYING] Endpoint falling behind, dropping event")
            return False
        self._queue.put(self._build_payload(state))
        return True

    def send(self, state: Optional[NowPlayingState]) -> bool:
        """
        Send one state change on the calling thread.

        Returns:
            True if the endpoint accepted the event, False otherwise
        """
        return self._post(self._build_payload(state))

    def _post(self, payload: Dict[str, Any]) -> bool:
        try:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning(f"[NOW_PLAYING] Failed to publish state: {e}")
            return False

    def _send_loop(self) -> None:
        try:
            while True:
                payload = self._queue.get()
                if payload is _STOP:
                    break
                self._post(payload)
        finally:
            self._client.close()
            logger.debug("[NOW_PLAYING] Publisher worker stopped")

    def close(self, timeout: Optional[float] = None) -> bool:
        """
        Flush pending events, then stop the worker and close the HTTP client.

        Args:
            timeout: Seconds to wait for the flush (default: one request
                timeout per pending event, plus one)

        Returns:
            True if the worker finished within the timeout
        """
        with self._close_lock:
            if not self._closed:
                self._closed = True
                self._queue.put(_STOP)
        if timeout is None:
            timeout = self.timeout * (self._queue.qsize() + 1)
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("[NOW_PLAYING] Publisher still busy after close, leaving it to finish")
            return False
        return True
