"""What-if simulation scenarios."""

from .engine import SimulationEngine, UnknownScenarioError, resolve_scenario
from .models import Scenario, SimulationResult

__all__ = ["SimulationEngine", "UnknownScenarioError", "resolve_scenario", "Scenario", "SimulationResult"]
