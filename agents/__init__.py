"""Workflow agents for URBANPULSE."""

from .simulation_agent import SimulationAgent

__all__ = ["SimulationAgent"]
