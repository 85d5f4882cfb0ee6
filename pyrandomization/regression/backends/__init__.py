"""Regression backends."""

from pyrandomization.regression.backends.cpu import CPUQRBackend

__all__ = ["CPUQRBackend"]
