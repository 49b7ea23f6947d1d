"""Streaming ChaCha20-Poly1305 payload encryption and ASCII armor for age-format files."""

__version__ = "0.1.0"