"""Tiered agent swarm: task routing and completion-decision engine."""

__version__ = "0.1.0"
