"""Acquire and cache Liberica JDK distributions."""

__version__ = "0.4.0"
