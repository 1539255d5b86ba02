"""Image components: RGB, ReconRGB."""

import numpy as np
from pydantic import BaseModel, Field


class Component(BaseModel):
    """Base class for all ECS components.

    Components are data containers using Pydantic for validation and type safety.
    Pixel and vector data is held as numpy arrays.
    """

    model_config = {"arbitrary_types_allowed": True}


class RGB(Component):
    """Original RGB image component.

    Attributes:
        pix: RGB pixel data (H, W, 3), unsigned integer or float in [0, 1]
        colorspace: Colorspace identifier (default 'sRGB')
    """

    pix: np.ndarray
    colorspace: str = Field(default="sRGB")


class ReconRGB(Component):
    """Reconstructed RGB image after decode.

    Attributes:
        pix: RGB pixel data (H, W, 3) uint8
        colorspace: Colorspace identifier (default 'sRGB')
    """

    pix: np.ndarray
    colorspace: str = Field(default="sRGB")
