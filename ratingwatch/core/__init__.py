"""Core configuration, logging, errors and conversion helpers."""
