"""Per-mode editing subsystems driven by the tool mode controller."""

from mapedit.tools.base import Subsystem
from mapedit.tools.drawing import GeometryConstructionEngine
from mapedit.tools.history import FeatureMoveEngine, MoveHistory
from mapedit.tools.measure import MeasurementSubsystem, MeasureMode
from mapedit.tools.print_view import PrintViewportController
from mapedit.tools.query import SpatialQueryEngine

__all__ = [
    "FeatureMoveEngine",
    "GeometryConstructionEngine",
    "MeasureMode",
    "MeasurementSubsystem",
    "MoveHistory",
    "PrintViewportController",
    "SpatialQueryEngine",
    "Subsystem",
]
