"""
gait_phase.py
-------------
Gait phase vocabulary shared with the external gait-phase detector.

The detector itself (thresholding of foot contact, event timing) lives outside
this package. The engine only reads its state through `GaitPhaseDetector`.
`GaitPhaseSnapshot` is a recorded detector state, used when replaying
detector output stored next to the kinematics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


def _normalize(name):
    return str(name).strip().lower().replace("-", "_").replace(" ", "_")


class GaitPhase(Enum):
    DOUBLE_SUPPORT = "double_support"
    LEFT_SWING = "left_swing"
    RIGHT_SWING = "right_swing"
    INVALID = "invalid"

    @classmethod
    def parse(cls, value):
        """Accept a GaitPhase or its name/value in any case ("Left-Swing", "LEFT_SWING")."""
        if isinstance(value, cls):
            return value
        key = _normalize(value)
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown gait phase {value!r}. Expected one of {[m.value for m in cls]}")


class LeadingLeg(Enum):
    RIGHT = "right"
    LEFT = "left"
    INVALID = "invalid"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        key = _normalize(value)
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown leading leg {value!r}. Expected one of {[m.value for m in cls]}")


@runtime_checkable
class GaitPhaseDetector(Protocol):
    """What the engine reads from the gait-phase detector on every sample.

    heel_strike_time / toe_off_time: timestamps [s] of the last events
    double_support_duration / single_support_duration: durations [s] of the
    most recently completed double- and single-support periods
    """
    phase: GaitPhase
    leading_leg: LeadingLeg
    heel_strike_time: float
    toe_off_time: float
    double_support_duration: float
    single_support_duration: float

    def is_detector_ready(self) -> bool:
        ...


@dataclass(frozen=True)
class GaitPhaseSnapshot:
    """Detector state at one time sample."""
    ready: bool = False
    phase: GaitPhase = GaitPhase.INVALID
    leading_leg: LeadingLeg = LeadingLeg.INVALID
    heel_strike_time: float = 0.0
    toe_off_time: float = 0.0
    double_support_duration: float = 0.0
    single_support_duration: float = 0.0

    def is_detector_ready(self):
        return self.ready
