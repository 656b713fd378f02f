"""Scoring and move recommendation."""

from .heatmap import HeatmapController
from .recommender import recommend, tie_set
from .value_engine import ValueEngine

__all__ = [
    "HeatmapController",
    "ValueEngine",
    "recommend",
    "tie_set",
]
