"""Tests for World and entity management."""

import numpy as np
import pytest

from blockbasis.components.image import RGB, Component
from blockbasis.core.world import World


class MockComponent(Component):
    """Mock component for testing."""

    value: int


class OtherComponent(Component):
    name: str


class TestWorld:
    """Tests for World ECS manager."""

    def test_new_entity(self) -> None:
        world = World()
        eid1 = world.new_entity()
        eid2 = world.new_entity()

        assert eid1 == 0
        assert eid2 == 1
        assert eid1 in world.metadata
        assert eid2 in world.metadata

    def test_add_and_get_component(self) -> None:
        world = World()
        eid = world.new_entity()
        world.add_component(eid, MockComponent(value=42))

        assert world.has_component(eid, MockComponent)
        assert world.get_component(eid, MockComponent).value == 42

    def test_add_component_replaces_same_type(self) -> None:
        world = World()
        eid = world.new_entity()
        world.add_component(eid, MockComponent(value=1))
        world.add_component(eid, MockComponent(value=2))

        assert world.get_component(eid, MockComponent).value == 2

    def test_add_component_nonexistent_entity(self) -> None:
        world = World()

        with pytest.raises(ValueError, match="Entity .* does not exist"):
            world.add_component(999, MockComponent(value=42))

    def test_get_component_not_present(self) -> None:
        world = World()
        eid = world.new_entity()

        with pytest.raises(KeyError, match="(does not have component|No entities have component)"):
            world.get_component(eid, MockComponent)

    def test_remove_component(self) -> None:
        world = World()
        eid = world.new_entity()
        world.add_component(eid, MockComponent(value=42))
        world.remove_component(eid, MockComponent)

        assert not world.has_component(eid, MockComponent)
        with pytest.raises(KeyError):
            world.remove_component(eid, MockComponent)

    def test_query(self) -> None:
        world = World()
        a = world.new_entity()
        b = world.new_entity()
        c = world.new_entity()
        world.add_component(a, MockComponent(value=1))
        world.add_component(b, MockComponent(value=2))
        world.add_component(b, OtherComponent(name="b"))
        world.add_component(c, OtherComponent(name="c"))

        assert world.query(MockComponent) == [a, b]
        assert world.query(MockComponent, OtherComponent) == [b]
        assert world.query() == [a, b, c]

    def test_destroy_entity(self) -> None:
        world = World()
        eid = world.new_entity()
        world.add_component(eid, MockComponent(value=1))
        world.destroy_entity(eid)

        assert eid not in world.metadata
        assert not world.has_component(eid, MockComponent)
        with pytest.raises(ValueError):
            world.destroy_entity(eid)

    def test_clear(self) -> None:
        world = World()
        eid = world.new_entity()
        world.add_component(eid, MockComponent(value=1))
        world.clear()

        assert world.metadata == {}
        assert world.query(MockComponent) == []
        assert world.new_entity() == 0


class TestSpawnImage:
    """Tests for image ingestion."""

    def test_spawn_image(self) -> None:
        world = World()
        img = np.zeros((8, 12, 3), dtype=np.uint8)
        eid = world.spawn_image(img)

        rgb = world.get_component(eid, RGB)
        assert rgb.pix.shape == (8, 12, 3)
        assert rgb.colorspace == "sRGB"
        assert world.metadata[eid]["image_shape"] == (8, 12, 3)
        assert world.metadata[eid]["image_dtype"] == "uint8"

    def test_spawn_image_copies(self) -> None:
        world = World()
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        eid = world.spawn_image(img)
        img[0, 0, 0] = 99

        assert world.get_component(eid, RGB).pix[0, 0, 0] == 0

    def test_spawn_image_accepts_float(self) -> None:
        world = World()
        eid = world.spawn_image(np.zeros((4, 4, 3), dtype=np.float32))
        assert world.has_component(eid, RGB)

    @pytest.mark.parametrize(
        "img",
        [
            np.zeros((8, 8), dtype=np.uint8),
            np.zeros((8, 8, 4), dtype=np.uint8),
            np.zeros((8, 8, 3), dtype=np.int32),
        ],
    )
    def test_spawn_image_invalid(self, img: np.ndarray) -> None:
        world = World()
        with pytest.raises(ValueError):
            world.spawn_image(img)
