"""Compressor identities and their configuration.

A compressor identity fixes everything the decoder must know out of band:
block size, basis construction, quantization variant and byte order.
Built-in identities can be overridden or extended from a TOML file:

    [compressors.smallbasis32]
    block_size = 32
    basis = "analytic"
    quantizer = "symmetric"

The file is looked up in this order: the BLOCKBASIS_CONFIG environment
variable, the explicit `config_path` argument, ./blockbasis.toml and
~/blockbasis.toml.
"""

from __future__ import annotations

import os
from typing import Any, Literal, cast

from pydantic import BaseModel, Field

# TOML loading for Python 3.11+ and older
try:
    import tomllib  # type: ignore[import-not-found, unused-ignore]
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found, no-redef, unused-ignore]

from blockbasis.core.container import ContainerCodec
from blockbasis.core.eigen import DEFAULT_MAX_SWEEPS, DEFAULT_TOLERANCE

CONFIG_ENV = "BLOCKBASIS_CONFIG"
CONFIG_FILENAME = "blockbasis.toml"


class CompressorConfig(BaseModel):
    """Settings for one compressor identity.

    Attributes:
        name: Identity name used on the command line
        block_size: Side length of each square block
        basis: 'analytic' or 'pca'
        quantizer: 'symmetric' (max-magnitude bound) or 'minmax'
        byte_order: Byte order of the container fields
        eigen_tolerance: Relative off-diagonal tolerance of the bounded eigensolver
        eigen_max_sweeps: Sweep budget of the bounded (Jacobi) eigensolver
    """

    model_config = {"frozen": True}

    name: str
    block_size: int = Field(default=8, ge=1, le=4096)
    basis: Literal["analytic", "pca"] = "analytic"
    quantizer: Literal["symmetric", "minmax"] = "symmetric"
    byte_order: Literal["little", "big"] = "little"
    eigen_tolerance: float = Field(default=DEFAULT_TOLERANCE, gt=0.0)
    eigen_max_sweeps: int = Field(default=DEFAULT_MAX_SWEEPS, ge=1)

    @property
    def embeds_basis(self) -> bool:
        """True when the basis vectors are stored in the container."""
        return self.basis == "pca"

    def codec(self) -> ContainerCodec:
        return ContainerCodec(
            block_size=self.block_size,
            quantizer=self.quantizer,
            embeds_basis=self.embeds_basis,
            byte_order=self.byte_order,
        )


BUILTIN_COMPRESSORS: dict[str, CompressorConfig] = {
    "smallbasis": CompressorConfig(name="smallbasis", block_size=8, quantizer="minmax"),
    "smallbasis16": CompressorConfig(
        name="smallbasis16", block_size=16, quantizer="minmax"
    ),
    "smallbasis-symmetric": CompressorConfig(
        name="smallbasis-symmetric", block_size=8, quantizer="symmetric"
    ),
    "pcaprune": CompressorConfig(
        name="pcaprune", block_size=8, basis="pca", quantizer="minmax"
    ),
    "pcaprune16": CompressorConfig(
        name="pcaprune16", block_size=16, basis="pca", quantizer="minmax"
    ),
}


def _resolve_config_path(config_path: str | None) -> str | None:
    """Resolve configuration path from env, explicit path, or defaults."""
    env_config = os.environ.get(CONFIG_ENV)
    if env_config:
        return env_config
    if config_path:
        return config_path
    candidates = [
        CONFIG_FILENAME,
        os.path.expanduser(f"~/{CONFIG_FILENAME}"),
    ]
    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    return None


def load_compressors(config_path: str | None = None) -> dict[str, CompressorConfig]:
    """Return built-in identities merged with those from the config file.

    Raises:
        FileNotFoundError: If an explicitly named config file does not exist
        ValueError: If the file declares an invalid compressor
    """
    compressors = dict(BUILTIN_COMPRESSORS)
    resolved_path = _resolve_config_path(config_path)
    if resolved_path is None:
        return compressors
    if not os.path.exists(resolved_path):
        raise FileNotFoundError(
            f"Config file not found at {resolved_path}. "
            f"Set {CONFIG_ENV} or create {CONFIG_FILENAME}"
        )

    with open(resolved_path, "rb") as f:
        config = cast(dict[str, Any], tomllib.load(f))

    for name, table in config.get("compressors", {}).items():
        if not isinstance(table, dict):
            raise ValueError(f"[compressors.{name}] in {resolved_path} must be a table")
        base = compressors.get(name)
        settings = base.model_dump() if base is not None else {}
        settings.update(table)
        settings["name"] = name
        compressors[name] = CompressorConfig(**settings)

    return compressors


def get_compressor(name: str, config_path: str | None = None) -> CompressorConfig:
    """Look up a compressor identity by name.

    Raises:
        ValueError: If the name is not configured
    """
    compressors = load_compressors(config_path)
    try:
        return compressors[name]
    except KeyError as e:
        raise ValueError(
            f"Unknown compressor {name!r}; available: {', '.join(sorted(compressors))}"
        ) from e
