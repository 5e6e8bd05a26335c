"""Metacognitive evaluation and feedback engine."""

__version__ = "1.0.0"
