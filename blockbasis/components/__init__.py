"""Data components attached to World entities."""

from blockbasis.components.basis import Basis
from blockbasis.components.blocks import BlockVectors, Coefficients
from blockbasis.components.image import RGB, Component, ReconRGB

__all__ = [
    "Basis",
    "BlockVectors",
    "Coefficients",
    "Component",
    "RGB",
    "ReconRGB",
]
