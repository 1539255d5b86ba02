"""Systems transforming components along the compression pipeline."""

from blockbasis.systems.basis import AnalyticBasis, PCABasis
from blockbasis.systems.blocker import BlockSplit
from blockbasis.systems.metrics import MetricMSE, MetricPSNR
from blockbasis.systems.projector import Project

__all__ = [
    "AnalyticBasis",
    "BlockSplit",
    "MetricMSE",
    "MetricPSNR",
    "PCABasis",
    "Project",
]
