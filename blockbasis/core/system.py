"""System base class for ECS transformations.

Systems are the "logic" layer of the ECS architecture. They operate on
components attached to entities, reading required components and producing
new components.

Systems support two modes:
- 'encode' or 'forward': Transforms data forward (compression direction)
- 'decode' or 'inverse': Transforms data backward (decompression direction)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from blockbasis.core.world import World

Mode = Literal["encode", "decode", "forward", "inverse"]


class System(ABC):
    """Base class for all ECS systems.

    Systems transform components attached to entities. They declare:
    - required_components(): What inputs they need
    - produced_components(): What outputs they create
    - run(): The actual transformation logic

    Attributes:
        mode: Transformation direction ('encode'/'forward'/'decode'/'inverse')
    """

    def __init__(self, mode: Mode = "encode") -> None:
        if mode not in ("encode", "decode", "forward", "inverse"):
            raise ValueError(f"Unknown mode {mode!r}")
        self.mode = mode

    @property
    def encoding(self) -> bool:
        """True when running in the compression direction."""
        return self.mode in ("encode", "forward")

    @abstractmethod
    def required_components(self) -> list[type]:
        """Return list of component types this system requires as input."""

    @abstractmethod
    def produced_components(self) -> list[type]:
        """Return list of component types this system produces as output."""

    @abstractmethod
    def run(self, world: World, eids: list[int]) -> None:
        """Execute system on given entities.

        Args:
            world: World instance with entities and components
            eids: List of entity IDs to process
        """

    def can_run(self, world: World, eid: int) -> bool:
        """Check if entity has all required components."""
        return all(world.has_component(eid, ct) for ct in self.required_components())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(mode={self.mode})"
