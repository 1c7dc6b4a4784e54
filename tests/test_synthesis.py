"""Tests for numpy tone rendering."""

import numpy as np
import pytest

from auditor.alerts.types import Severity
from auditor.audio.synthesis import (
    envelope,
    instantaneous_frequency,
    oscillate,
    pad_leading_silence,
    render_tone,
    to_pcm16,
    tone_times,
)
from auditor.audio.waveforms import (
    Envelope,
    Oscillator,
    PulseGenerator,
    SirenGenerator,
    ToneEvent,
)


class TestRenderTone:
    """Test rendering a tone to samples."""

    def test_length_and_dtype(self):
        tone = ToneEvent(start_offset=0.0, frequency=440, duration=0.15, peak_gain=0.3)
        samples = render_tone(tone, sample_rate=8000)

        assert samples.dtype == np.float32
        assert len(samples) == 1200

    def test_amplitude_bounded_by_peak(self):
        tone = SirenGenerator().plan(Severity.CRITICAL, 1.0)[0]
        samples = render_tone(tone, sample_rate=8000)
        assert np.max(np.abs(samples)) <= tone.peak_gain + 1e-6

    def test_zero_gain_is_silent(self):
        tone = SirenGenerator().plan(Severity.HIGH, 0.0)[0]
        assert not np.any(render_tone(tone, sample_rate=8000))

    def test_deterministic(self):
        tone = PulseGenerator().plan(Severity.HIGH, 0.5)[0]
        np.testing.assert_array_equal(render_tone(tone), render_tone(tone))


class TestFrequency:
    """Test pitch ramp and modulation."""

    def test_fixed_pitch(self):
        tone = ToneEvent(start_offset=0.0, frequency=440, duration=0.1, peak_gain=0.3)
        freq = instantaneous_frequency(tone, tone_times(0.1, 1000))
        assert np.all(freq == 440)

    def test_siren_ramp(self):
        """Rises to the peak by 20% of the tone, falls back to base by 80%."""
        tone = ToneEvent(
            start_offset=0.0, frequency=880, duration=1.0, peak_gain=0.3,
            peak_frequency=1200,
        )
        t = np.array([0.0, 0.2, 0.5, 0.8])
        np.testing.assert_allclose(instantaneous_frequency(tone, t), [880, 1200, 1040, 880])

    def test_modulation_depth(self):
        tone = ToneEvent(
            start_offset=0.0, frequency=1000, duration=1.0, peak_gain=0.3,
            mod_rate=20, mod_depth=100,
        )
        freq = instantaneous_frequency(tone, tone_times(1.0, 8000))
        assert freq.max() == pytest.approx(1100, abs=0.5)
        assert freq.min() == pytest.approx(900, abs=0.5)


class TestEnvelope:
    """Test amplitude envelopes."""

    def test_exponential_decays_to_floor(self):
        tone = ToneEvent(start_offset=0.0, frequency=440, duration=1.0, peak_gain=0.3, floor_gain=0.01)
        env = envelope(tone, np.array([0.0, 0.5, 1.0]))

        assert env[0] == pytest.approx(0.3)
        assert env[2] == pytest.approx(0.01)
        assert env[0] > env[1] > env[2]

    def test_exponential_below_floor_is_linear(self):
        tone = ToneEvent(start_offset=0.0, frequency=440, duration=1.0, peak_gain=0.0005, floor_gain=0.001)
        env = envelope(tone, np.array([0.0, 0.5, 1.0]))
        np.testing.assert_allclose(env, [0.0005, 0.00025, 0.0])

    def test_trapezoid_edges(self):
        tone = ToneEvent(
            start_offset=0.0, frequency=110, duration=0.1, peak_gain=0.4,
            envelope=Envelope.TRAPEZOID, floor_gain=0.0, edge_time=0.01,
        )
        env = envelope(tone, np.array([0.0, 0.005, 0.01, 0.05, 0.09, 0.1]))
        np.testing.assert_allclose(env, [0.0, 0.2, 0.4, 0.4, 0.4, 0.0], atol=1e-9)


class TestOscillators:
    """Test oscillator shapes."""

    def test_square_is_bipolar(self):
        phase = np.linspace(0, 4 * np.pi, 100)
        assert set(np.unique(oscillate(Oscillator.SQUARE, phase))) == {-1.0, 1.0}

    def test_sawtooth_range(self):
        wave = oscillate(Oscillator.SAWTOOTH, np.linspace(0, 6 * np.pi, 1000))
        assert wave.min() >= -1.0
        assert wave.max() < 1.0


class TestBufferHelpers:
    """Test padding and PCM conversion."""

    def test_leading_silence(self):
        samples = np.ones(10, dtype=np.float32)
        padded = pad_leading_silence(samples, 0.5, sample_rate=10)

        assert len(padded) == 15
        assert not np.any(padded[:5])

    def test_negative_delay_not_padded(self):
        samples = np.ones(10, dtype=np.float32)
        assert len(pad_leading_silence(samples, -1.0)) == 10

    def test_pcm16_clips(self):
        pcm = to_pcm16(np.array([-2.0, 0.0, 0.5, 2.0]))
        assert pcm.dtype == np.int16
        assert list(pcm) == [-32767, 0, 16383, 32767]
