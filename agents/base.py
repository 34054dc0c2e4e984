"""Base agent class for URBANPULSE agents."""

from typing import Dict, Any, Optional
from abc import ABC, abstractmethod
import logging

from utils.config_loader import get_config


class BaseAgent(ABC):
    """Abstract base class for all URBANPULSE agents."""

    def __init__(
        self,
        name: str,
        role: str,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize base agent.

        Args:
            name: Agent name
            role: Agent role/description
            config: Optional settings mapping; defaults to settings.yaml
        """
        self.name = name
        self.role = role
        self.config = config if config is not None else get_config()
        self.logger = logging.getLogger(f"urbanpulse.agents.{name.lower().replace(' ', '_')}")

        self.logger.info(f"Initialized {self.name} - {self.role}")

    @abstractmethod
    async def process(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process the current state and return updated state.

        Args:
            state: Current workflow state

        Returns:
            Updated state
        """
        pass

    def record_error(self, state: Dict[str, Any], message: str) -> None:
        """Append a non-fatal error to the workflow state and log it."""
        self.logger.warning(message)
        state.setdefault("errors", []).append(f"{self.name}: {message}")
