"""
Segment-list provider for Stationcast.

Reads stations and their broadcast segments from the station web API:

    GET {base_url}/stations/{station_id}     -> station row (loop_broadcast flag)
    GET {base_url}/broadcasts/{station_id}   -> segment rows ordered by position

The provider is read-only; authoring and persistence live in the web app.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from stationcast.broadcast_core.segment import Broadcast, Segment, StationInfo, order_segments
from stationcast.errors import SegmentError

logger = logging.getLogger(__name__)


class BroadcastProvider:
    """
    Client for the station/broadcast API.

    Failed requests are logged and reported as None so callers can decide
    how to surface them.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        """
        Args:
            base_url: API root, e.g. http://127.0.0.1:3000/api
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx.Client
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

        logging.getLogger("httpx").setLevel(logging.WARNING)
        logger.info(f"BroadcastProvider initialized (url={self.base_url})")

    def _get_json(self, path: str) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.warning(f"[PROVIDER] GET {url} failed: {e}")
            return None
        except ValueError as e:
            logger.warning(f"[PROVIDER] GET {url} returned invalid JSON: {e}")
            return None

    def get_station(self, station_id) -> Optional[StationInfo]:
        data = self._get_json(f"/stations/{station_id}")
        if not isinstance(data, dict):
            return None
        return StationInfo.from_dict(data)

    def get_segments(self, station_id) -> Optional[List[Segment]]:
        """
        Fetch a station's segments in play order.

        Malformed rows are skipped with a warning rather than failing the
        whole broadcast.
        """
        rows = self._get_json(f"/broadcasts/{station_id}")
        if not isinstance(rows, list):
            return None

        segments = []
        for row in rows:
            try:
                segments.append(Segment.from_dict(row))
            except SegmentError as e:
                logger.warning(f"[PROVIDER] Skipping segment: {e}")
        try:
            return order_segments(segments)
        except SegmentError as e:
            logger.error(f"[PROVIDER] Station {station_id} has conflicting positions: {e}")
            return None

    def get_broadcast(self, station_id) -> Optional[Broadcast]:
        """Fetch station metadata and segments together."""
        station = self.get_station(station_id)
        if station is None:
            return None
        segments = self.get_segments(station_id)
        if segments is None:
            return None
        return Broadcast(station=station, segments=segments, loop=station.loop_broadcast)

    def close(self) -> None:
        self._client.close()


class StaticBroadcastProvider:
    """In-memory provider built from already-parsed rows (used for local playlists)."""

    def __init__(self, station: Dict[str, Any], segment_rows: List[Dict[str, Any]]):
        self._station = StationInfo.from_dict(station)
        self._segments = order_segments([Segment.from_dict(r) for r in segment_rows])

    def get_station_id(self):
        return self._station.id

    def get_station(self, station_id) -> Optional[StationInfo]:
        return self._station if str(self._station.id) == str(station_id) else None

    def get_segments(self, station_id) -> Optional[List[Segment]]:
        return list(self._segments) if self.get_station(station_id) else None

    def get_broadcast(self, station_id) -> Optional[Broadcast]:
        station = self.get_station(station_id)
        if station is None:
            return None
        return Broadcast(station=station, segments=list(self._segments), loop=station.loop_broadcast)

    def close(self) -> None:
        return
