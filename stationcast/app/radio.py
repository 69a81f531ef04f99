"""
Main entry point for the Stationcast player.

Usage:
    python -m stationcast play 12              # play station 12 from the API
    python -m stationcast play --playlist my_show.json --no-loop
    python -m stationcast show 12              # print the segment running order
    python -m stationcast voices               # list installed Piper voices

A playlist file holds {"station": {...}, "segments": [...]} in the same shape
the station API returns.
"""

import argparse
import json
import logging
import signal
import sys
from typing import Optional

from stationcast.app.broadcast_provider import BroadcastProvider, StaticBroadcastProvider
from stationcast.app.config import load_config
from stationcast.app.player import StationPlayer, create_speech_driver
from stationcast.broadcast_core.segment import describe_segment
from stationcast.errors import PlaybackError, SegmentError
from stationcast.log_file import attach_log_file

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stationcast", description="Play a station broadcast")
    parser.add_argument("--api-url", help="Station API root (overrides STATIONCAST_API_URL)")
    parser.add_argument("--log-level", help="Log level (overrides STATIONCAST_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Play a station's broadcast")
    play.add_argument("station_id", nargs="?", help="Station id")
    play.add_argument("--playlist", help="Play a local playlist JSON file instead of the API")
    loop = play.add_mutually_exclusive_group()
    loop.add_argument("--loop", dest="loop", action="store_true", default=None,
                      help="Loop the broadcast (default: station setting)")
    loop.add_argument("--no-loop", dest="loop", action="store_false",
                      help="Stop after the last segment")

    show = sub.add_parser("show", help="Print a station's segments in play order")
    show.add_argument("station_id", nargs="?", help="Station id")
    show.add_argument("--playlist", help="Read a local playlist JSON file instead of the API")

    sub.add_parser("voices", help="List installed Piper voices")
    return parser


def _load_playlist(path: str) -> StaticBroadcastProvider:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return StaticBroadcastProvider(data.get("station") or {}, data.get("segments") or [])


def _provider_and_station(args, config):
    if args.playlist:
        try:
            provider = _load_playlist(args.playlist)
        except (OSError, json.JSONDecodeError, SegmentError) as e:
            logger.error(f"Failed to read playlist {args.playlist}: {e}")
            return None, None
        station_id = args.station_id or provider.get_station_id()
    else:
        provider = BroadcastProvider(config.api_base_url, timeout=config.api_timeout)
        station_id = args.station_id
    return provider, station_id


def _show(args, config) -> int:
    provider, station_id = _provider_and_station(args, config)
    if provider is None:
        return 1
    try:
        broadcast = provider.get_broadcast(station_id)
    finally:
        provider.close()
    if broadcast is None:
        print(f"Failed to load station {station_id}", file=sys.stderr)
        return 1
    loop_label = "loops" if broadcast.loop else "plays once"
    print(f"{broadcast.station.name} ({len(broadcast.segments)} segments, {loop_label})")
    for index, segment in enumerate(broadcast.segments, start=1):
        print(f"{index:3d}. {describe_segment(segment)}")
    return 0


def _play(args, config) -> int:
    provider, station_id = _provider_and_station(args, config)
    if provider is None:
        return 1
    player = StationPlayer(config, provider=provider)

    shutdown_initiated = False

    def signal_handler(sig, frame):
        nonlocal shutdown_initiated
        if shutdown_initiated:
            return
        shutdown_initiated = True
        signal_name = "SIGTERM" if sig == signal.SIGTERM else "SIGINT"
        logger.info(f"Received {signal_name} signal - stopping playback")
        player.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        session = player.play(station_id, loop=args.loop)
        if session is None:
            return 1
        # Short waits keep the main thread responsive to signals
        while not player.wait(timeout=0.5):
            pass
        return 0
    except PlaybackError as e:
        logger.error(f"Cannot start playback: {e}")
        return 1
    finally:
        player.close()


def main(argv: Optional[list] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = load_config()
    except ValueError:
        return 2
    if args.api_url:
        config.api_base_url = args.api_url
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    attach_log_file(logger, config.log_file)

    if args.command in ("play", "show") and not (args.station_id or args.playlist):
        logger.error("A station id or --playlist is required")
        return 2

    if args.command == "show":
        return _show(args, config)
    if args.command == "voices":
        for voice in create_speech_driver(config).list_voices():
            print(voice)
        return 0
    return _play(args, config)
