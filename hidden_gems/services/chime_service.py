# hidden_gems/services/chime_service.py
"""Synthesized notification chime served to clients as a small WAV file."""

import io
import math
import struct
import wave
from functools import lru_cache
from typing import Sequence, Tuple

SAMPLE_RATE = 22050

# (frequency Hz, start offset s, duration s): a rising three-note chime
DEFAULT_TONES: Tuple[Tuple[float, float, float], ...] = (
    (880.0, 0.00, 0.18),
    (1108.73, 0.09, 0.18),
    (1318.51, 0.18, 0.30),
)


def _envelope(t: float, duration: float) -> float:
    # Short attack then exponential decay, no clicks at the edges
    attack = 0.01
    if t < attack:
        return t / attack
    return math.exp(-6.0 * (t - attack) / duration)


def render_samples(tones: Sequence[Tuple[float, float, float]] = DEFAULT_TONES, volume: float = 0.3):
    total = max(start + dur for _, start, dur in tones)
    frames = [0.0] * int(total * SAMPLE_RATE)
    for freq, start, dur in tones:
        first = int(start * SAMPLE_RATE)
        count = int(dur * SAMPLE_RATE)
        for i in range(count):
            idx = first + i
            if idx >= len(frames):
                break
            t = i / SAMPLE_RATE
            frames[idx] += math.sin(2 * math.pi * freq * t) * _envelope(t, dur)

    peak = max((abs(s) for s in frames), default=0.0) or 1.0
    scale = volume / peak
    return [s * scale for s in frames]


@lru_cache(maxsize=4)
def render_chime_wav(tones: Tuple[Tuple[float, float, float], ...] = DEFAULT_TONES) -> bytes:
    samples = render_samples(tones)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(SAMPLE_RATE)
        wav.writeframes(b"".join(struct.pack("<h", int(s * 32767)) for s in samples))
    return buf.getvalue()
