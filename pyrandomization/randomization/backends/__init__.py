"""Randomization inference backends."""

from pyrandomization.randomization.backends.cpu import CPURandomizationBackend

__all__ = ["CPURandomizationBackend"]
