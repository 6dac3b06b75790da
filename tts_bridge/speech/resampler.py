"""Linear-interpolation downsampling of 16-bit mono PCM.

Output sample ``i`` is read from fractional input position ``i * ratio`` where
``ratio = input_rate / output_rate``. The two neighbouring input samples are
blended linearly, rounded half-up and narrowed back to int16. No anti-aliasing
filter is applied.
"""

from __future__ import annotations

import math

import numpy as np

from tts_bridge.speech.config import OUTPUT_SAMPLE_RATE

SAMPLE_WIDTH = 2
PCM_DTYPE = np.dtype("<i2")


def output_length(byte_length: int, input_rate: float, output_rate: int = OUTPUT_SAMPLE_RATE) -> int:
    """Return the byte length ``resample`` produces for an input of ``byte_length`` bytes."""
    total_input = byte_length // SAMPLE_WIDTH
    ratio = input_rate / output_rate
    return math.floor(total_input / ratio) * SAMPLE_WIDTH


def resample(
    buffer: bytes,
    input_rate: float,
    output_rate: int = OUTPUT_SAMPLE_RATE,
) -> bytes:
    """Resample little-endian int16 mono PCM from ``input_rate`` to ``output_rate``.

    Args:
        buffer: Raw PCM bytes; the length must be a whole number of samples.
        input_rate: Sample rate of ``buffer`` in Hz. Any positive rate is accepted.
        output_rate: Target sample rate in Hz.

    Returns:
        PCM bytes of exactly ``floor(samples / ratio) * 2`` bytes.

    Raises:
        ValueError: If a rate is not positive or ``buffer`` has an odd length.
    """
    if input_rate <= 0:
        raise ValueError(f"input_rate must be positive, got {input_rate}")
    if output_rate <= 0:
        raise ValueError(f"output_rate must be positive, got {output_rate}")
    if len(buffer) % SAMPLE_WIDTH != 0:
        raise ValueError(
            f"PCM buffer length ({len(buffer)} bytes) must be a multiple of {SAMPLE_WIDTH}"
        )

    total_input = len(buffer) // SAMPLE_WIDTH
    ratio = input_rate / output_rate
    total_output = math.floor(total_input / ratio)
    if total_output == 0:
        return b""

    samples = np.frombuffer(buffer, dtype=PCM_DTYPE).astype(np.float64)

    positions = np.arange(total_output, dtype=np.float64) * ratio
    index1 = np.floor(positions).astype(np.int64)
    # the last output sample may sit on the final input sample; never read past it
    index2 = np.minimum(index1 + 1, total_input - 1)
    fraction = positions - index1

    sample1 = samples[index1]
    sample2 = samples[index2]
    interpolated = np.floor(sample1 + (sample2 - sample1) * fraction + 0.5)

    # int64 -> int16 keeps the low 16 bits (two's-complement wrap, no saturation)
    return interpolated.astype(np.int64).astype(PCM_DTYPE).tobytes()


def downsample_to_8khz(buffer: bytes, input_rate: float) -> bytes:
    """Downsample provider PCM to 8 kHz telephony audio."""
    return resample(buffer, input_rate, OUTPUT_SAMPLE_RATE)


__all__ = ["PCM_DTYPE", "SAMPLE_WIDTH", "downsample_to_8khz", "output_length", "resample"]
