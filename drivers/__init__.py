from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.bridge import Bridge


class SourceDriver(ABC):
    """Abstract base class for drivers that feed channel posts into the bridge."""

    def __init__(self, instance_id: str, bridge: "Bridge"):
        self.instance_id = instance_id
        self.bridge = bridge

    @abstractmethod
    async def start(self):
        """Start the driver (connect, authenticate, begin listening).
        Long-running drivers should loop indefinitely here."""
