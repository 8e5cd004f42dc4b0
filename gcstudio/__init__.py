"""Calibration and profile studio for GameCube controller adapters."""

__version__ = "0.3.0"
