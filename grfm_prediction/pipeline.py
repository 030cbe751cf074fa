# pipeline.py
# Offline replay of the GRFM engine over a table of samples (pandas).
# Steps: coordinates -> finite-difference speeds/accelerations -> recorded detector
# state per row -> engine.solve per row -> one output row per sample.
import numpy as np, pandas as pd

from .gait_phase import GaitPhase, GaitPhaseSnapshot, LeadingLeg
from .prediction import GRFMInput, GRFMPrediction

SNAPSHOT_COLUMNS = [
    "ready", "phase", "leading_leg", "heel_strike_time", "toe_off_time",
    "double_support_duration", "single_support_duration",
]


def output_columns():
    cols = ["time"]
    for side in ("right", "left"):
        for quantity in ("force", "torque", "point"):
            cols += [f"{side}_{quantity}_{axis}" for axis in "xyz"]
    return cols


def kinematics_from_frame(frame, coordinates, time_column="time"):
    # q from the coordinate columns; qDot and qDDot by np.gradient over time
    missing = [c for c in [time_column, *coordinates] if c not in frame.columns]
    if missing:
        raise ValueError(f"Missing kinematic columns: {missing}")
    t = frame[time_column].to_numpy(dtype=float)
    q = frame[list(coordinates)].to_numpy(dtype=float)
    if len(t) > 1:
        if np.any(np.diff(t) <= 0):
            raise ValueError(f"Column {time_column!r} must be strictly increasing")
        q_dot = np.gradient(q, t, axis=0)
        q_ddot = np.gradient(q_dot, t, axis=0)
    else:
        q_dot = np.zeros_like(q)
        q_ddot = np.zeros_like(q)
    for i in range(len(t)):
        yield GRFMInput(t=float(t[i]), q=q[i], q_dot=q_dot[i], q_ddot=q_ddot[i])


def snapshots_from_frame(frame):
    missing = [c for c in SNAPSHOT_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"Missing gait phase columns: {missing}")
    for row in frame[SNAPSHOT_COLUMNS].itertuples(index=False):
        yield GaitPhaseSnapshot(
            ready=bool(row.ready),
            phase=GaitPhase.parse(row.phase),
            leading_leg=LeadingLeg.parse(row.leading_leg),
            heel_strike_time=float(row.heel_strike_time),
            toe_off_time=float(row.toe_off_time),
            double_support_duration=float(row.double_support_duration),
            single_support_duration=float(row.single_support_duration),
        )


class ReplayDetector:
    """Serves one recorded snapshot at a time through the detector interface."""

    def __init__(self, snapshot=None):
        self.current = snapshot if snapshot is not None else GaitPhaseSnapshot()

    def is_detector_ready(self):
        return self.current.is_detector_ready()

    def __getattr__(self, name):
        # only called for attributes not found on the instance
        return getattr(self.__dict__["current"], name)


def predict_frame(model, parameters, frame, coordinates=None, time_column="time"):
    """Run a fresh engine over every row of `frame`; returns a DataFrame with
    `output_columns()`."""
    if coordinates is None:
        coordinates = model.coordinate_names
    detector = ReplayDetector()
    engine = GRFMPrediction(model, parameters, detector)
    rows = []
    for sample, snapshot in zip(kinematics_from_frame(frame, coordinates, time_column),
                                snapshots_from_frame(frame)):
        detector.current = snapshot
        rows.append(engine.solve(sample).as_row())
    return pd.DataFrame(rows, columns=output_columns())
