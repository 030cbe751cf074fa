"""
prediction.py
-------------
Per-sample GRFM prediction: total reaction → gait-aligned frame → left/right
split and CoP.

Engine state that changes between samples (heading buffer, heel-strike
anchors, Tds, Tss) lives in `PredictionState`. The engine owns one, and any
other instance can be passed explicitly to `solve`.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
import numpy as np

from .direction import CircularBuffer, gait_direction_rotation
from .exceptions import ConfigurationError
from .reactions import compute_total_reaction, select_method
from .sta import (
    FootStations, compute_reaction_point, reaction_component_transition,
    separate_reaction_components,
)

logger = logging.getLogger(__name__)


def _zeros():
    return np.zeros(3)


# -------------------------------
# Data structures
# -------------------------------

@dataclass
class GRFMParameters:
    """Engine configuration, fixed for the engine lifetime.
    *_station_location: (3,) heel/toe points in the stance body frame [m]
    direction_window_size: samples in the heading moving average
    method: reaction estimation method name (see reactions.select_method)
    heel_strike_tolerance: |t - heel strike time| below which the sample is the
      heel-strike sample [s]; 0.0 keeps the exact comparison
    """
    pelvis_body_name: str = "pelvis"
    r_station_body_name: str = "calcn_r"
    l_station_body_name: str = "calcn_l"
    r_heel_station_location: np.ndarray = field(default_factory=lambda: np.array([-0.125, -0.035, 0.0]))
    l_heel_station_location: np.ndarray = field(default_factory=lambda: np.array([-0.125, -0.035, 0.0]))
    r_toe_station_location: np.ndarray = field(default_factory=lambda: np.array([0.075, -0.035, 0.0]))
    l_toe_station_location: np.ndarray = field(default_factory=lambda: np.array([0.075, -0.035, 0.0]))
    direction_window_size: int = 10
    method: str = "newton_euler"
    heel_strike_tolerance: float = 0.0

    def __post_init__(self):
        for name in ("r_heel_station_location", "l_heel_station_location",
                     "r_toe_station_location", "l_toe_station_location"):
            value = np.asarray(getattr(self, name), dtype=float)
            if value.shape != (3,):
                raise ConfigurationError(f"{name} must be a 3-vector, got shape {value.shape}")
            setattr(self, name, value)
        if self.heel_strike_tolerance < 0.0:
            raise ConfigurationError("heel_strike_tolerance must be >= 0")


@dataclass(frozen=True)
class GRFMInput:
    """One kinematic sample: time [s], q, qDot, qDDot."""
    t: float
    q: np.ndarray
    q_dot: np.ndarray
    q_ddot: np.ndarray


@dataclass
class ReactionWrench:
    """Reaction on one leg: force [N], torque [N·m], point of application (CoP) [m]."""
    force: np.ndarray = field(default_factory=_zeros)
    torque: np.ndarray = field(default_factory=_zeros)
    point: np.ndarray = field(default_factory=_zeros)


@dataclass
class GRFMOutput:
    t: float
    right: ReactionWrench = field(default_factory=ReactionWrench)
    left: ReactionWrench = field(default_factory=ReactionWrench)

    def as_row(self):
        """Flat dict: time, {right,left}_{force,torque,point}_{x,y,z}."""
        row = {"time": self.t}
        for side in ("right", "left"):
            wrench = getattr(self, side)
            for quantity in ("force", "torque", "point"):
                for axis, value in zip("xyz", getattr(wrench, quantity)):
                    row[f"{side}_{quantity}_{axis}"] = float(value)
        return row


@dataclass
class PredictionState:
    """Mutable per-stream state, updated once per solved sample.
    force_at_heel_strike / moment_at_heel_strike: gait-frame total reaction at
      the last heel strike (zero before the first one)
    Tds / Tss: last double- and single-support durations [s]
    """
    direction_buffer: CircularBuffer
    force_at_heel_strike: np.ndarray = field(default_factory=_zeros)
    moment_at_heel_strike: np.ndarray = field(default_factory=_zeros)
    Tds: float = 0.0
    Tss: float = 0.0

    @classmethod
    def create(cls, window_size):
        return cls(direction_buffer=CircularBuffer(window_size))


# -------------------------------
# Engine
# -------------------------------

class GRFMPrediction:
    """Ground reaction force/moment and CoP prediction for both legs.

    Usage:
        engine = GRFMPrediction(model, GRFMParameters(method="id"), detector)
        output = engine.solve(GRFMInput(t, q, q_dot, q_ddot))

    `model` (model.BiomechanicalModel) and `detector`
    (gait_phase.GaitPhaseDetector) are updated by the caller; the engine pushes
    the kinematics into the model on every ready sample.
    """

    def __init__(self, model, parameters, detector):
        self.model = model
        self.parameters = parameters
        self.detector = detector
        self.method = select_method(parameters.method)

        known = set(model.body_names)
        for name in (parameters.pelvis_body_name, parameters.r_station_body_name,
                     parameters.l_station_body_name):
            if name not in known:
                raise ConfigurationError(f"Body {name!r} not found in model. Known bodies: {sorted(known)}")

        self._stations = {
            "r": (parameters.r_station_body_name,
                  parameters.r_heel_station_location, parameters.r_toe_station_location),
            "l": (parameters.l_station_body_name,
                  parameters.l_heel_station_location, parameters.l_toe_station_location),
        }
        self.state = PredictionState.create(parameters.direction_window_size)
        logger.info("GRFM prediction using the %s method", self.method.value)

    def reset(self):
        """Start a new stream: clear heading history, anchors and durations."""
        self.state = PredictionState.create(self.parameters.direction_window_size)

    def _foot_stations(self, side):
        body, heel, toe = self._stations[side]
        return FootStations(heel=self.model.station_location_in_ground(body, heel),
                            toe=self.model.station_location_in_ground(body, toe))

    def solve(self, sample, state=None):
        """Predict both legs' reactions for one sample (see module docstring)."""
        state = self.state if state is None else state
        output = GRFMOutput(t=sample.t)
        detector = self.detector
        if not detector.is_detector_ready():
            return output

        self.model.update_state(sample.q, sample.q_dot, sample.q_ddot)
        self.model.realize_dynamics()

        # total reaction in the heading-aligned frame
        R_GB, _ = self.model.body_transform(self.parameters.pelvis_body_name)
        R = gait_direction_rotation(R_GB, state.direction_buffer)
        force, moment = compute_total_reaction(self.method, self.model, sample,
                                               self.parameters.pelvis_body_name)
        force = R @ force
        moment = R @ moment

        time = sample.t - detector.heel_strike_time
        if abs(time) <= self.parameters.heel_strike_tolerance:
            state.force_at_heel_strike = force.copy()
            state.moment_at_heel_strike = moment.copy()
            logger.debug("heel strike at t=%.4f: anchored force %s", sample.t, force)

        state.Tds = detector.double_support_duration
        state.Tss = detector.single_support_duration

        phase, leading_leg = detector.phase, detector.leading_leg
        transition = partial(reaction_component_transition, Tds=state.Tds)
        transitions = (transition, transition, transition)
        right_force, left_force = separate_reaction_components(
            phase, leading_leg, time, force, state.force_at_heel_strike, transitions)
        right_moment, left_moment = separate_reaction_components(
            phase, leading_leg, time, moment, state.moment_at_heel_strike, transitions)

        right_point, left_point = compute_reaction_point(
            phase, leading_leg, sample.t - detector.toe_off_time,
            self._foot_stations("r"), self._foot_stations("l"), state.Tss)

        output.right = ReactionWrench(force=right_force, torque=right_moment, point=right_point)
        output.left = ReactionWrench(force=left_force, torque=left_moment, point=left_point)
        return output
