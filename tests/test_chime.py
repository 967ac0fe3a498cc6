import io
import wave

from hidden_gems.services.chime_service import DEFAULT_TONES, SAMPLE_RATE, render_chime_wav, render_samples


def test_samples_stay_within_volume():
    samples = render_samples(volume=0.3)
    assert samples
    assert max(abs(s) for s in samples) <= 0.3 + 1e-9


def test_wav_header_and_length():
    data = render_chime_wav()
    with wave.open(io.BytesIO(data)) as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == SAMPLE_RATE
        last_end = max(start + duration for _, start, duration in DEFAULT_TONES)
        assert wav.getnframes() == int(last_end * SAMPLE_RATE)


def test_custom_tones():
    data = render_chime_wav(((440.0, 0.0, 0.1),))
    with wave.open(io.BytesIO(data)) as wav:
        assert wav.getnframes() == int(0.1 * SAMPLE_RATE)
