"""
Speech driver using the Piper TTS command line tool.

Each utterance is synthesized to a temporary WAV file:

    echo "text" | piper --model {voices_dir}/{voice}.onnx --output_file out.wav

and then played on a dedicated pygame mixer channel, so it never interrupts
the music stream. The driver reports itself unavailable when the piper binary
or the mixer cannot be found; the segment player then skips announcements.
"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Union

import pygame

from .base import SpeechDriver
from .pygame_music import init_mixer

logger = logging.getLogger(__name__)

SPEECH_CHANNEL = 7
POLL_INTERVAL_SEC = 0.05
SYNTH_TIMEOUT_SEC = 30.0


class PiperSpeechDriver(SpeechDriver):
    """
    Piper-backed text to speech, one utterance at a time.

    Attributes:
        piper_bin: Piper executable (absolute path or name on PATH)
        voices_dir: Directory of Piper voice models ({name}.onnx)
        default_voice: Voice used when a segment does not pick one
    """

    def __init__(self, piper_bin: str = "piper", voices_dir: Union[str, Path] = ".",
                 default_voice: Optional[str] = None):
        self.piper_bin = piper_bin
        self.voices_dir = Path(voices_dir).expanduser()
        self.default_voice = default_voice
        self._lock = threading.Lock()
        self._cancel_event: Optional[threading.Event] = None
        self._process: Optional[subprocess.Popen] = None
        self._channel = None

    def _resolve_bin(self) -> Optional[str]:
        if os.path.isfile(self.piper_bin) and os.access(self.piper_bin, os.X_OK):
            return self.piper_bin
        return shutil.which(self.piper_bin)

    def list_voices(self) -> List[str]:
        if not self.voices_dir.is_dir():
            return []
        return sorted(p.stem for p in self.voices_dir.glob("*.onnx"))

    def _resolve_model(self, voice_id: Optional[str]) -> Optional[Path]:
        for name in (voice_id, self.default_voice):
            if name:
                model = self.voices_dir / f"{name}.onnx"
                if model.is_file():
                    return model
        voices = self.list_voices()
        if voices:
            return self.voices_dir / f"{voices[0]}.onnx"
        return None

    def is_available(self) -> bool:
        try:
            if self._resolve_bin() is None or self._resolve_model(None) is None:
                return False
            init_mixer()
            return True
        except Exception as e:
            logger.debug(f"[SPEECH] Speech capability unavailable: {e}")
            return False

    def speak(self, text: str, voice_id: Optional[str] = None) -> bool:
        piper = self._resolve_bin()
        model = self._resolve_model(voice_id)
        if piper is None or model is None:
            logger.warning("[SPEECH] Piper binary or voice model missing, skipping utterance")
            return False

        cancel_event = threading.Event()
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()
            self._cancel_event = cancel_event

        fd, wav_path = tempfile.mkstemp(prefix="stationcast_tts_", suffix=".wav")
        os.close(fd)
        try:
            if not self._synthesize(piper, model, text, wav_path, cancel_event):
                return False
            return self._play_wav(wav_path, cancel_event)
        finally:
            with self._lock:
                if self._cancel_event is cancel_event:
                    self._cancel_event = None
            try:
                os.unlink(wav_path)
            except OSError:
                pass

    def _synthesize(self, piper: str, model: Path, text: str, wav_path: str,
                    cancel_event: threading.Event) -> bool:
        cmd = [piper, "--model", str(model), "--output_file", wav_path]
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"[SPEECH] Failed to start piper: {e}")
            return False

        with self._lock:
            self._process = process
        try:
            try:
                process.stdin.write(text.encode("utf-8"))
                process.stdin.close()
            except OSError as e:
                logger.error(f"[SPEECH] Failed to send text to piper: {e}")
                process.kill()
                return False

            waited = 0.0
            while process.poll() is None:
                if cancel_event.wait(POLL_INTERVAL_SEC):
                    process.kill()
                    return False
                waited += POLL_INTERVAL_SEC
                if waited >= SYNTH_TIMEOUT_SEC:
                    logger.error(f"[SPEECH] piper timed out after {SYNTH_TIMEOUT_SEC}s")
                    process.kill()
                    return False

            if process.returncode != 0:
                stderr = process.stderr.read().decode("utf-8", "replace").strip() if process.stderr else ""
                logger.error(f"[SPEECH] piper exited with {process.returncode}: {stderr}")
                return False
            return True
        finally:
            with self._lock:
                self._process = None

    def _play_wav(self, wav_path: str, cancel_event: threading.Event) -> bool:
        if cancel_event.is_set():
            return False
        try:
            sound = pygame.mixer.Sound(wav_path)
            channel = pygame.mixer.Channel(SPEECH_CHANNEL)
            channel.play(sound)
        except pygame.error as e:
            logger.error(f"[SPEECH] Error playing synthesized speech: {e}")
            return False

        with self._lock:
            self._channel = channel
        logger.info(f"[SPEECH] Speaking ({sound.get_length():.1f}s)")
        try:
            while channel.get_busy():
                if cancel_event.wait(POLL_INTERVAL_SEC):
                    channel.stop()
                    return False
            return True
        finally:
            with self._lock:
                self._channel = None

    def cancel_all(self) -> None:
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()
            if self._process is not None and self._process.poll() is None:
                self._process.kill()
            if self._channel is not None:
                try:
                    self._channel.stop()
                except pygame.error as e:
                    logger.debug(f"[SPEECH] Error stopping speech channel: {e}")
