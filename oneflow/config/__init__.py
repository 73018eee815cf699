"""
Configuration Package

Exposes the environment-driven `Config` object consumed by the app factory.
"""

from .config import Config

__all__ = ['Config']
