"""Voxgate — real-time audio transcription gateway."""

__version__ = "0.1.0"
