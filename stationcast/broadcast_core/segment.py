"""
Segment model for station broadcasts.

A broadcast is an ordered list of Segments. Each Segment carries exactly one
config shape, and the shape decides its kind:

- TrackConfig        -> SegmentKind.TRACK ("track")
- AnnouncementConfig -> SegmentKind.ANNOUNCEMENT ("tts")
- VolumeDipConfig    -> SegmentKind.VOLUME_DIP ("volume_dip")

The wire names match the station API payloads, so rows returned by
GET /api/broadcasts/{station_id} can be fed straight into Segment.from_dict().
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import parse_qs, urlparse

from stationcast.errors import SegmentError

FULL_VOLUME = 100
DEFAULT_FADE_OUT_SEC = 2.0
DEFAULT_DUCK_VOLUME = 20

# Clip IDs are URL-safe tokens (YouTube uses 11 chars of [A-Za-z0-9_-])
_SOURCE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_PATH_PREFIXES = ("embed", "shorts", "live", "v")


class SegmentKind(str, Enum):
    """Closed set of segment kinds (values are the API wire names)."""
    TRACK = "track"
    ANNOUNCEMENT = "tts"
    VOLUME_DIP = "volume_dip"


@dataclass(frozen=True)
class TrackConfig:
    """
    Play a clip from a media source.

    Attributes:
        source: Bare clip ID or a URL containing it
        title: Display title (falls back to the source reference)
        start_offset: Seconds into the clip to start from
        end_offset: Seconds into the clip to stop at (0 = natural end)
        fade_in: Fade-in duration in seconds (0 = start at full volume)
        fade_out: Fade-out duration in seconds before the end
    """
    source: str
    title: str = ""
    start_offset: float = 0.0
    end_offset: float = 0.0
    fade_in: float = 0.0
    fade_out: float = DEFAULT_FADE_OUT_SEC

    def __post_init__(self):
        if self.start_offset < 0:
            raise SegmentError(f"start_offset must be >= 0 (got {self.start_offset})")
        if self.end_offset < 0:
            raise SegmentError(f"end_offset must be >= 0 (got {self.end_offset})")
        if self.fade_in < 0 or self.fade_out < 0:
            raise SegmentError("fade durations must be >= 0")

    @property
    def display_title(self) -> str:
        return self.title or self.source


@dataclass(frozen=True)
class AnnouncementConfig:
    """
    Speak a line of text, optionally ducking the music underneath it.

    Attributes:
        text: Text to synthesize
        voice: Optional voice selector understood by the speech driver
        duck_music: Lower music volume while speaking
        duck_volume: Volume (0-100) to duck the music to
    """
    text: str
    voice: Optional[str] = None
    duck_music: bool = False
    duck_volume: int = DEFAULT_DUCK_VOLUME

    def __post_init__(self):
        if not 0 <= self.duck_volume <= 100:
            raise SegmentError(f"duck_volume must be 0-100 (got {self.duck_volume})")


@dataclass(frozen=True)
class VolumeDipConfig:
    """Hold the music at `volume` (0-100) for `duration` seconds."""
    volume: int
    duration: float

    def __post_init__(self):
        if not 0 <= self.volume <= 100:
            raise SegmentError(f"volume must be 0-100 (got {self.volume})")
        if self.duration < 0:
            raise SegmentError(f"duration must be >= 0 (got {self.duration})")


SegmentConfig = Union[TrackConfig, AnnouncementConfig, VolumeDipConfig]

_KIND_BY_CONFIG = {
    TrackConfig: SegmentKind.TRACK,
    AnnouncementConfig: SegmentKind.ANNOUNCEMENT,
    VolumeDipConfig: SegmentKind.VOLUME_DIP,
}


@dataclass(frozen=True)
class Segment:
    """
    One element of a broadcast.

    `kind` is derived from the config type, so a Segment can never carry a
    config that disagrees with its kind.
    """
    id: Any
    position: int
    config: SegmentConfig
    station_id: Optional[Any] = field(default=None, compare=False)

    def __post_init__(self):
        if type(self.config) not in _KIND_BY_CONFIG:
            raise SegmentError(f"Unsupported segment config: {type(self.config).__name__}")

    @property
    def kind(self) -> SegmentKind:
        return _KIND_BY_CONFIG[type(self.config)]

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "Segment":
        """
        Build a Segment from a station API row.

        Raises:
            SegmentError: If the type is unknown or the config is malformed
        """
        try:
            kind = SegmentKind(row.get("type"))
        except ValueError:
            raise SegmentError(f"Invalid segment type: {row.get('type')!r}")

        raw = row.get("config") or {}
        if not isinstance(raw, dict):
            raise SegmentError(f"Segment {row.get('id')} config must be an object")

        try:
            if kind is SegmentKind.TRACK:
                source = str(raw.get("youtubeId") or "").strip()
                if not source:
                    raise SegmentError(f"Segment {row.get('id')}: track source is required")
                fade_out = raw.get("fadeOut")
                config = TrackConfig(
                    source=source,
                    title=raw.get("title") or "",
                    start_offset=float(raw.get("startTime") or 0),
                    end_offset=float(raw.get("endTime") or 0),
                    fade_in=float(raw.get("fadeIn") or 0),
                    fade_out=DEFAULT_FADE_OUT_SEC if fade_out is None else float(fade_out),
                )
            elif kind is SegmentKind.ANNOUNCEMENT:
                text = str(raw.get("text") or "").strip()
                if not text:
                    raise SegmentError(f"Segment {row.get('id')}: announcement text is required")
                duck_volume = raw.get("dipVolume")
                config = AnnouncementConfig(
                    text=text,
                    voice=raw.get("voice") or None,
                    duck_music=bool(raw.get("dipMusic", False)),
                    duck_volume=DEFAULT_DUCK_VOLUME if duck_volume is None else int(duck_volume),
                )
            else:
                if raw.get("volume") is None or raw.get("duration") is None:
                    raise SegmentError(f"Segment {row.get('id')}: volume and duration are required")
                config = VolumeDipConfig(
                    volume=int(raw["volume"]),
                    duration=float(raw["duration"]),
                )
        except SegmentError:
            raise
        except (TypeError, ValueError) as e:
            raise SegmentError(f"Segment {row.get('id')}: invalid config ({e})")

        try:
            position = int(row["position"])
        except (KeyError, TypeError, ValueError):
            raise SegmentError(f"Segment {row.get('id')}: position must be an integer")

        return cls(id=row.get("id"), position=position, config=config, station_id=row.get("station_id"))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the station API row shape."""
        cfg = self.config
        if isinstance(cfg, TrackConfig):
            config = {
                "youtubeId": cfg.source,
                "title": cfg.title,
                "startTime": cfg.start_offset,
                "endTime": cfg.end_offset,
                "fadeIn": cfg.fade_in,
                "fadeOut": cfg.fade_out,
            }
        elif isinstance(cfg, AnnouncementConfig):
            config = {
                "text": cfg.text,
                "voice": cfg.voice or "",
                "dipMusic": cfg.duck_music,
                "dipVolume": cfg.duck_volume,
            }
        else:
            config = {"volume": cfg.volume, "duration": cfg.duration}
        row = {"id": self.id, "type": self.kind.value, "position": self.position, "config": config}
        if self.station_id is not None:
            row["station_id"] = self.station_id
        return row


@dataclass(frozen=True)
class StationInfo:
    """Station metadata as returned by GET /api/stations/{id}."""
    id: Any
    name: str
    host: Optional[str] = None
    description: Optional[str] = None
    genre: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    loop_broadcast: bool = True

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "StationInfo":
        loop_flag = row.get("loop_broadcast")
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            host=row.get("host"),
            description=row.get("description"),
            genre=row.get("genre"),
            lat=row.get("lat"),
            lng=row.get("lng"),
            loop_broadcast=True if loop_flag is None else bool(loop_flag),
        )


@dataclass(frozen=True)
class Broadcast:
    """A station's ordered segment sequence plus its loop flag."""
    station: StationInfo
    segments: List[Segment]
    loop: bool = True


def extract_source_id(reference: Optional[str]) -> Optional[str]:
    """
    Extract a clip ID from a bare ID or a pasted URL.

    Accepts:
        "dQw4w9WgXcQ"
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10"
        "https://youtu.be/dQw4w9WgXcQ"
        "https://www.youtube.com/embed/dQw4w9WgXcQ"

    Returns:
        The clip ID, or None if the reference cannot be parsed
    """
    if not reference:
        return None
    reference = reference.strip()
    if not reference:
        return None

    if "/" not in reference and "?" not in reference:
        return reference if _SOURCE_ID_RE.match(reference) else None

    if "://" not in reference:
        reference = "https://" + reference
    parsed = urlparse(reference)

    candidates = parse_qs(parsed.query).get("v", [])
    parts = [p for p in parsed.path.split("/") if p]
    if parsed.netloc.lower().endswith("youtu.be") and parts:
        candidates.append(parts[0])
    elif len(parts) >= 2 and parts[0] in _PATH_PREFIXES:
        candidates.append(parts[1])

    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and _SOURCE_ID_RE.match(candidate):
            return candidate
    return None


def order_segments(segments: Sequence[Segment]) -> List[Segment]:
    """
    Return segments sorted by position.

    Raises:
        SegmentError: If two segments share a position
    """
    ordered = sorted(segments, key=lambda s: s.position)
    for prev, curr in zip(ordered, ordered[1:]):
        if prev.position == curr.position:
            raise SegmentError(
                f"Segments {prev.id} and {curr.id} share position {curr.position}"
            )
    return ordered


def reorder_segments(segments: Sequence[Segment], segment_ids: Sequence[Any]) -> List[Segment]:
    """
    Apply a new id order and re-derive positions as 0..n-1.

    Raises:
        SegmentError: If segment_ids is not a permutation of the segment ids
    """
    by_id = {s.id: s for s in segments}
    if len(segment_ids) != len(by_id) or set(segment_ids) != set(by_id):
        raise SegmentError("Reorder ids must name every segment exactly once")
    return [replace(by_id[sid], position=index) for index, sid in enumerate(segment_ids)]


def move_segment(segments: Sequence[Segment], index: int, offset: int) -> List[Segment]:
    """Swap the segment at `index` with its neighbour at `index + offset`."""
    ordered = order_segments(segments)
    target = index + offset
    if not (0 <= index < len(ordered)) or not (0 <= target < len(ordered)):
        return ordered
    ids = [s.id for s in ordered]
    ids[index], ids[target] = ids[target], ids[index]
    return reorder_segments(ordered, ids)


def _fmt_seconds(value: float) -> str:
    return f"{value:g}s"


def describe_segment(segment: Segment) -> str:
    """One-line "title - details" summary used by segment list displays."""
    cfg = segment.config
    if isinstance(cfg, TrackConfig):
        title = cfg.display_title
        details = f"{_fmt_seconds(cfg.fade_in)} fade-in, {_fmt_seconds(cfg.fade_out)} fade-out"
    elif isinstance(cfg, AnnouncementConfig):
        title = cfg.text if len(cfg.text) <= 50 else cfg.text[:50] + "..."
        details = f"Music dip to {cfg.duck_volume}%" if cfg.duck_music else "No music dip"
    else:
        title = "Volume Dip"
        details = f"{cfg.volume}% for {_fmt_seconds(cfg.duration)}"
    return f"[{segment.kind.value}] {title} - {details}"
