"""A multi-reactor TCP server library with one event loop per thread, and an echo server."""

__version__ = "0.1.0"