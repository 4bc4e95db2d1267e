"""Lesspay merchant API toolkit: canonical request signing, signed client and webhook receiver."""

__version__ = "0.1.0"
