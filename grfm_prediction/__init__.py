"""
GRFM Prediction

Ground reaction force/moment and center of pressure estimation for both legs
of a walking subject, from joint kinematics and a gait-phase signal only.

Pipeline per sample:
1. Total reaction: inverse dynamics or Newton-Euler summation
2. Gait direction: moving average of the pelvis heading
3. STA split: left/right reaction and CoP from phase-dependent transitions
"""

from .direction import CircularBuffer, gait_direction_rotation, projection_on_plane
from .exceptions import ConfigurationError, GRFMError
from .gait_phase import GaitPhase, GaitPhaseDetector, GaitPhaseSnapshot, LeadingLeg
from .model import BiomechanicalModel, Segment, SegmentTreeModel, lower_body_model
from .prediction import (
    GRFMInput, GRFMOutput, GRFMParameters, GRFMPrediction, PredictionState, ReactionWrench,
)
from .reactions import Method, compute_total_reaction, select_method
from .sta import (
    FootStations, compute_reaction_point, cop_position, reaction_component_transition,
    separate_reaction_components,
)

__all__ = [
    "BiomechanicalModel",
    "CircularBuffer",
    "ConfigurationError",
    "FootStations",
    "GRFMError",
    "GRFMInput",
    "GRFMOutput",
    "GRFMParameters",
    "GRFMPrediction",
    "GaitPhase",
    "GaitPhaseDetector",
    "GaitPhaseSnapshot",
    "LeadingLeg",
    "Method",
    "PredictionState",
    "ReactionWrench",
    "Segment",
    "SegmentTreeModel",
    "compute_reaction_point",
    "compute_total_reaction",
    "cop_position",
    "gait_direction_rotation",
    "lower_body_model",
    "projection_on_plane",
    "reaction_component_transition",
    "select_method",
    "separate_reaction_components",
]
