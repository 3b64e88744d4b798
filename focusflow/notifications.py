"""
Audio cue for the FocusFlow application.
Plays a short generated chime when a session or the micro-timer ends.
Playback is best-effort: failures are logged and otherwise ignored.
"""

import sys
import math
import struct
import wave
import io
import os
import logging
import subprocess
import tempfile
from typing import Optional

logger = logging.getLogger(__name__)


def _tone(frequency: float, seconds: float, sample_rate: int, amplitude: float, fade: float):
    count = int(sample_rate * seconds)
    fade_samples = max(1, int(sample_rate * fade))
    samples = []
    for i in range(count):
        value = amplitude * math.sin(2 * math.pi * frequency * (i / sample_rate))
        # Fade in/out to avoid clicks
        if i < fade_samples:
            value *= i / fade_samples
        elif i > count - fade_samples:
            value *= (count - i) / fade_samples
        samples.append(int(value))
    return samples


def generate_notification_sound(sample_rate: int = 44100, volume: float = 0.4) -> bytes:
    """Generate a two-tone chime (A5 then C6) as WAV data."""
    amplitude = 32767 * volume

    samples = _tone(880, 0.1, sample_rate, amplitude, 0.01)
    samples.extend([0] * int(sample_rate * 0.05))
    samples.extend(_tone(1046, 0.15, sample_rate, amplitude, 0.015))

    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(struct.pack(f'<{len(samples)}h', *samples))

    return buffer.getvalue()


class AudioCue:
    """
    Fire-and-forget sound player.
    Writes the chime to a temp file once and hands it to the platform player.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._temp_file: Optional[str] = None

    def _ensure_file(self) -> str:
        if self._temp_file is None:
            fd, self._temp_file = tempfile.mkstemp(suffix='.wav')
            with os.fdopen(fd, 'wb') as f:
                f.write(generate_notification_sound())
        return self._temp_file

    def play(self):
        """Play the cue. Never raises."""
        if not self.enabled:
            return
        try:
            self._play_sound(self._ensure_file())
        except Exception as e:
            logger.debug("Could not play sound: %s", e)

    def _play_sound(self, path: str):
        """Platform-specific sound playback."""
        system = sys.platform.lower()

        if system == 'darwin':
            subprocess.Popen(['afplay', path], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        elif system.startswith('linux'):
            # PulseAudio first, then ALSA
            for cmd in ['paplay', 'aplay']:
                try:
                    subprocess.Popen([cmd, path], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                    return
                except FileNotFoundError:
                    continue
            logger.debug("No audio player found (tried paplay, aplay)")
        elif system == 'win32':
            import winsound
            winsound.PlaySound(path, winsound.SND_FILENAME | winsound.SND_ASYNC)

    def cleanup(self):
        """Clean up temporary files."""
        if self._temp_file and os.path.exists(self._temp_file):
            try:
                os.remove(self._temp_file)
            except OSError as e:
                logger.debug("Could not remove %s: %s", self._temp_file, e)
        self._temp_file = None


# Global instance
_audio_cue: Optional[AudioCue] = None


def get_audio_cue() -> AudioCue:
    """Get or create the global AudioCue instance."""
    global _audio_cue
    if _audio_cue is None:
        _audio_cue = AudioCue()
    return _audio_cue
