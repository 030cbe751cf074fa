"""
sta.py
------
Smooth Transition Algorithm (STA): left/right split of the total reaction and
the CoP trajectory of each foot.

Double support is statically indeterminate, so the trailing leg keeps the load
it carried at heel strike, decayed by a transition function of the time since
heel strike; the leading leg takes the rest. Transition functions after
Ren et al. (https://doi.org/10.1016/j.jbiomech.2008.06.001); the same shape is
used for the anterior, vertical and lateral components.

CoP during single support rolls from heel to metatarsal following
https://doi.org/10.1016/j.jbiomech.2013.09.012.

Vectors are ordered (anterior, vertical, lateral).
"""

import logging
from dataclasses import dataclass
import numpy as np

from .gait_phase import GaitPhase, LeadingLeg

logger = logging.getLogger(__name__)


@dataclass
class FootStations:
    """Heel and toe (metatarsal) points of one foot, in ground [m]."""
    heel: np.ndarray
    toe: np.ndarray


# -------------------------------
# Transition functions
# -------------------------------

def reaction_component_transition(time, Tds):
    """Trailing-leg share of the heel-strike load: clip(exp(-(2t/Tds)^3), 0, 1).
    1 at heel strike, decays to 0 within about one double-support period Tds."""
    if Tds <= 0.0:
        return 1.0 if time <= 0.0 else 0.0
    with np.errstate(over="ignore"):
        return float(np.clip(np.exp(-(2.0 * time / Tds) ** 3), 0.0, 1.0))


def cop_progress(time, Tss):
    """Heel→toe progress in [0, 1] at `time` since toe-off of the other leg.
    Not monotonic; only boundedness is guaranteed by the clip."""
    if Tss <= 0.0:
        return 0.0 if time <= 0.0 else 1.0
    omega = 2.0 * np.pi / Tss
    scale = -2.0 / (3.0 * np.pi) * (np.sin(omega * time) - np.sin(2.0 * omega * time) / 8.0
                                    - 3.0 / 4.0 * omega * time)
    return float(np.clip(scale, 0.0, 1.0))


def cop_position(time, d, Tss):
    """Displacement from the heel along d = toe - heel."""
    return cop_progress(time, Tss) * np.asarray(d, dtype=float)


# -------------------------------
# Left / right split
# -------------------------------

def separate_reaction_components(phase, leading_leg, time, total, at_heel_strike, transitions):
    """Split `total` (3,) into (right, left).
    time: seconds since the last heel strike
    at_heel_strike: (3,) total component latched at that heel strike
    transitions: three callables f(time) for the anterior, vertical, lateral axes
    """
    total = np.asarray(total, dtype=float)
    zero = np.zeros(3)

    if phase is GaitPhase.DOUBLE_SUPPORT:
        trailing = np.array([at_heel_strike[i] * f(time) for i, f in enumerate(transitions)])
        leading = total - trailing
        if leading_leg is LeadingLeg.RIGHT:
            return leading, trailing
        if leading_leg is LeadingLeg.LEFT:
            return trailing, leading
        logger.warning("STA: invalid leading leg during double support; reaction left at zero")
        return zero, zero.copy()
    if phase is GaitPhase.LEFT_SWING:
        return total.copy(), zero
    if phase is GaitPhase.RIGHT_SWING:
        return zero, total.copy()
    return zero, zero.copy()


def compute_reaction_point(phase, leading_leg, time, right_foot, left_foot, Tss):
    """CoP (right, left) in ground.
    time: seconds since the last toe-off
    right_foot / left_foot: FootStations
    """
    zero = np.zeros(3)

    if phase is GaitPhase.DOUBLE_SUPPORT:
        if leading_leg is LeadingLeg.RIGHT:
            return right_foot.toe.copy(), left_foot.heel.copy()
        if leading_leg is LeadingLeg.LEFT:
            return right_foot.heel.copy(), left_foot.toe.copy()
        logger.warning("CoP: invalid leading leg during double support; CoP left at zero")
        return zero, zero.copy()
    if phase is GaitPhase.LEFT_SWING:
        d = right_foot.toe - right_foot.heel
        return right_foot.heel + cop_position(time, d, Tss), zero
    if phase is GaitPhase.RIGHT_SWING:
        d = left_foot.toe - left_foot.heel
        return zero, left_foot.heel + cop_position(time, d, Tss)
    return zero, zero.copy()
