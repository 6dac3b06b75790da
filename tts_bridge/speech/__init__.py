"""Speech bridge service: provider client, resampler and streaming endpoint."""

from .app import create_app
from .config import BridgeConfig
from .resampler import downsample_to_8khz, resample
from .streaming import CHUNK_SIZE, iter_chunks

__all__ = [
    "CHUNK_SIZE",
    "BridgeConfig",
    "create_app",
    "downsample_to_8khz",
    "iter_chunks",
    "resample",
]
