"""
Sample-level rendering of scheduled tones with numpy.

Turns ToneEvents into float32 sample buffers: oscillator, pitch ramp,
frequency modulation and amplitude envelope.
"""

import numpy as np

from auditor.audio.waveforms import ToneEvent, Oscillator, Envelope, PITCH_RAMP_POINTS

DEFAULT_SAMPLE_RATE = 44100


def tone_times(duration: float, sample_rate: int = DEFAULT_SAMPLE_RATE) -> np.ndarray:
    """Sample times in seconds for a tone of the given duration."""
    n_samples = max(int(round(duration * sample_rate)), 1)
    return np.arange(n_samples, dtype=np.float64) / sample_rate


def instantaneous_frequency(tone: ToneEvent, t: np.ndarray) -> np.ndarray:
    """
    Carrier frequency at each sample time.

    Applies the base->peak->base pitch ramp when the tone has a peak
    frequency, then adds the sine modulator for FM tones.
    """
    if tone.peak_frequency is None:
        freq = np.full_like(t, float(tone.frequency))
    else:
        rise, fall = PITCH_RAMP_POINTS
        freq = np.interp(
            t,
            [0.0, tone.duration * rise, tone.duration * fall],
            [tone.frequency, tone.peak_frequency, tone.frequency],
        )

    if tone.mod_rate > 0 and tone.mod_depth > 0:
        freq = freq + tone.mod_depth * np.sin(2 * np.pi * tone.mod_rate * t)

    return freq


def oscillate(oscillator: Oscillator, phase: np.ndarray) -> np.ndarray:
    """Evaluate an oscillator shape at the given phases (radians)."""
    if oscillator == Oscillator.SINE:
        return np.sin(phase)
    if oscillator == Oscillator.SAWTOOTH:
        return 2.0 * np.mod(phase / (2 * np.pi), 1.0) - 1.0
    if oscillator == Oscillator.SQUARE:
        return np.where(np.sin(phase) >= 0, 1.0, -1.0)
    raise ValueError(f"Unknown oscillator: {oscillator}")


def envelope(tone: ToneEvent, t: np.ndarray) -> np.ndarray:
    """
    Amplitude envelope for a tone.

    Exponential envelopes decay from peak gain to floor gain over the tone;
    when the floor is not below the peak (very low volume) the decay is
    linear to silence instead. Trapezoid envelopes ramp linearly up and down
    over the edge time and hold the peak in between.
    """
    peak = tone.peak_gain
    if peak <= 0:
        return np.zeros_like(t)

    if tone.envelope == Envelope.EXPONENTIAL:
        progress = t / tone.duration
        if 0 < tone.floor_gain < peak:
            return peak * np.power(tone.floor_gain / peak, progress)
        return peak * np.clip(1.0 - progress, 0.0, 1.0)

    if tone.envelope == Envelope.TRAPEZOID:
        edge = min(tone.edge_time, tone.duration / 2)
        if edge <= 0:
            return np.full_like(t, peak)
        return np.interp(
            t,
            [0.0, edge, tone.duration - edge, tone.duration],
            [0.0, peak, peak, 0.0],
        )

    raise ValueError(f"Unknown envelope: {tone.envelope}")


def render_tone(tone: ToneEvent, sample_rate: int = DEFAULT_SAMPLE_RATE) -> np.ndarray:
    """
    Render one tone to mono float32 samples in [-1, 1].

    Args:
        tone: Tone to render
        sample_rate: Output sample rate in Hz

    Returns:
        1-D float32 array of length duration * sample_rate
    """
    t = tone_times(tone.duration, sample_rate)
    freq = instantaneous_frequency(tone, t)

    # Integrate frequency to phase so ramps and FM stay continuous
    phase = 2 * np.pi * (np.cumsum(freq) - freq[0]) / sample_rate

    wave = oscillate(tone.oscillator, phase) * envelope(tone, t)
    return wave.astype(np.float32)


def pad_leading_silence(
    samples: np.ndarray,
    delay_s: float,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> np.ndarray:
    """Prepend delay_s seconds of silence to a sample buffer."""
    pad = int(round(max(delay_s, 0.0) * sample_rate))
    if pad == 0:
        return samples
    return np.concatenate([np.zeros(pad, dtype=samples.dtype), samples])


def to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Convert float samples to 16-bit signed PCM."""
    return (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
