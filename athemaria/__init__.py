"""Athemaria - story-sharing platform backend"""

__version__ = "1.0.0"
