"""Framed TCP messaging with a handshake, client and server interfaces, and load-testing tools."""

__version__ = "0.1.0"