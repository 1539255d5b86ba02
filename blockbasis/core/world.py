"""World: Entity-Component-System manager.

The World is the central ECS registry that manages:
- Entity creation (integer IDs)
- Component storage (type -> entity -> component mapping)
- Component queries (find entities with specific component combinations)

Example:
    >>> world = World()
    >>> eid = world.spawn_image(img)
    >>> world.add_component(eid, basis)
    >>> entities = world.query(RGB, Basis)  # Entities with both components
    >>> world.clear()  # Reset for next image
"""

from __future__ import annotations

from typing import Any, TypeVar

import numpy as np
from pydantic import BaseModel

Component = BaseModel

T = TypeVar("T", bound=Component)


class World:
    """Central ECS registry managing entities and their components.

    Attributes:
        metadata: Per-entity metadata dict (image shape, metric results, ...)

    Example:
        >>> world = World()
        >>> eid = world.spawn_image(np.zeros((16, 16, 3), dtype=np.uint8))
        >>> world.has_component(eid, RGB)
        True
    """

    def __init__(self) -> None:
        self._next_eid = 0
        self._components: dict[type[Component], dict[int, Component]] = {}
        self.metadata: dict[int, dict[str, Any]] = {}

    def new_entity(self) -> int:
        """Create a new entity and return its ID."""
        eid = self._next_eid
        self._next_eid += 1
        self.metadata[eid] = {}
        return eid

    def spawn_image(self, img: np.ndarray) -> int:
        """Ingest an RGB image into the world.

        Args:
            img: RGB image array (H, W, 3) with an unsigned integer dtype
                or float32/float64 samples in [0, 1]

        Returns:
            Entity ID with RGB component attached

        Raises:
            ValueError: If image shape or dtype is invalid
        """
        from blockbasis.components.image import RGB

        if img.ndim != 3 or img.shape[2] != 3:
            raise ValueError(f"Expected image with shape (H, W, 3), got {img.shape}")
        if not (
            np.issubdtype(img.dtype, np.unsignedinteger)
            or img.dtype in (np.float32, np.float64)
        ):
            raise ValueError(
                f"Expected unsigned integer or float dtype, got {img.dtype}"
            )

        eid = self.new_entity()
        self.add_component(eid, RGB(pix=img.copy()))

        self.metadata[eid]["image_shape"] = img.shape
        self.metadata[eid]["image_dtype"] = str(img.dtype)

        return eid

    def clear(self) -> None:
        """Drop all entities and components so the World can be reused."""
        self._next_eid = 0
        self._components.clear()
        self.metadata.clear()

    def add_component(self, eid: int, component: Component) -> None:
        """Attach a component to an entity, replacing one of the same type.

        Raises:
            ValueError: If entity does not exist
        """
        if eid not in self.metadata:
            raise ValueError(f"Entity {eid} does not exist")

        self._components.setdefault(type(component), {})[eid] = component

    def get_component(self, eid: int, comp_type: type[T]) -> T:
        """Retrieve a component from an entity.

        Raises:
            KeyError: If entity does not have the component
        """
        if comp_type not in self._components:
            raise KeyError(f"No entities have component type {comp_type.__name__}")
        if eid not in self._components[comp_type]:
            raise KeyError(f"Entity {eid} does not have component {comp_type.__name__}")

        return self._components[comp_type][eid]  # type: ignore

    def has_component(self, eid: int, comp_type: type[Component]) -> bool:
        """Check if entity has a specific component type."""
        return (
            comp_type in self._components
            and eid in self._components[comp_type]
        )

    def remove_component(self, eid: int, comp_type: type[Component]) -> None:
        """Remove a component from an entity.

        Raises:
            KeyError: If entity does not have the component
        """
        if not self.has_component(eid, comp_type):
            raise KeyError(f"Entity {eid} does not have component {comp_type.__name__}")

        del self._components[comp_type][eid]

    def query(self, *comp_types: type[Component]) -> list[int]:
        """Query entities that have ALL specified component types.

        Example:
            >>> eids = world.query(BlockVectors, Basis)
        """
        if not comp_types:
            return list(self.metadata.keys())

        result_set = set(self._components.get(comp_types[0], {}).keys())
        for comp_type in comp_types[1:]:
            if comp_type not in self._components:
                return []
            result_set &= set(self._components[comp_type].keys())

        return sorted(result_set)

    def destroy_entity(self, eid: int) -> None:
        """Remove entity and all its components."""
        if eid not in self.metadata:
            raise ValueError(f"Entity {eid} does not exist")

        for comp_store in self._components.values():
            comp_store.pop(eid, None)

        del self.metadata[eid]

    def pipe(self, entity: int) -> Any:
        """Create a pipeline for the given entity.

        Example:
            >>> blocks = (
            ...     world.pipe(entity)
            ...     .to(BlockSplit(block_size=8, mode='encode'))
            ...     .out(BlockVectors)
            ... )
        """
        from blockbasis.core.pipeline import Pipe

        return Pipe(world=self, entity=entity)

    def __repr__(self) -> str:
        return (
            f"World(entities={len(self.metadata)}, "
            f"component_types={len(self._components)})"
        )
