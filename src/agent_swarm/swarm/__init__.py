"""Swarm routing, runtime state, and completion-decision engine."""
