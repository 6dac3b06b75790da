"""Text-to-speech bridge producing 8 kHz telephony PCM streams."""

__version__ = "1.0.0"
