"""Pipeline and scheduling.

Implements a fluent API for composing systems into pipelines with
dependency checking.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel

if TYPE_CHECKING:
    from blockbasis.core.system import System
    from blockbasis.core.world import World

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class Pipe:
    """Fluent pipeline builder.

    Systems are chained with `.to()` or the pipe operator `|` and executed
    in order by `.out()` or `.execute()`.

    Example:
        >>> world = World()
        >>> entity = world.spawn_image(img)
        >>> blocks = (
        ...     world.pipe(entity)
        ...     .to(BlockSplit(block_size=8, mode='encode'))
        ...     .out(BlockVectors)
        ... )
    """

    def __init__(self, world: "World", entity: int) -> None:
        self.world: Any = world
        self.entities = [entity]
        self.systems: list[Any] = []

    def to(self, system: "System") -> "Pipe":
        """Add system to pipeline and return self for chaining."""
        self.systems.append(system)
        return self

    def __or__(self, system: "System") -> "Pipe":
        """Pipe operator, equivalent to `.to(system)`."""
        return self.to(system)

    def out(self, component_type: type[T]) -> T:
        """Execute pipeline and return component of specified type.

        Raises:
            RuntimeError: If any system cannot run (missing dependencies)
            KeyError: If entity doesn't have the requested component after execution
        """
        self.execute()
        return self.world.get_component(self.entities[0], component_type)  # type: ignore[no-any-return]

    def execute(self) -> None:
        """Run all systems in order with dependency checking.

        Raises:
            RuntimeError: If any system cannot run on any entity
        """
        for system in self.systems:
            runnable = [
                eid for eid in self.entities if system.can_run(self.world, eid)
            ]

            if not runnable:
                required = [ct.__name__ for ct in system.required_components()]
                raise RuntimeError(
                    f"System {type(system).__name__} cannot run: "
                    f"entities missing required components {required}. "
                    f"Available entities: {self.entities}"
                )

            logger.debug("Running %r on entities %s", system, runnable)
            system.run(self.world, runnable)
