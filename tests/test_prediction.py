import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from grfm_prediction.exceptions import ConfigurationError
from grfm_prediction.gait_phase import GaitPhase, GaitPhaseSnapshot, LeadingLeg
from grfm_prediction.model import foot_station_offsets
from grfm_prediction.prediction import GRFMInput, GRFMParameters, GRFMPrediction, PredictionState
from grfm_prediction.sta import cop_position, reaction_component_transition

WEIGHT = np.array([0.0, 75.0 * 9.81, 0.0])


def _stations(model, standing_q):
    zeros = np.zeros(model.nq)
    model.update_state(standing_q, zeros, zeros)
    heel, toe = foot_station_offsets()
    return {f"{point}_{side}": model.station_location_in_ground(f"calcn_{side}", offset)
            for side in "rl" for point, offset in (("heel", heel), ("toe", toe))}


def test_not_ready_returns_zero_output(engine, make_sample):
    engine.detector = GaitPhaseSnapshot(ready=False, phase=GaitPhase.LEFT_SWING)
    output = engine.solve(make_sample(1.234))
    assert output.t == 1.234
    for wrench in (output.right, output.left):
        for vector in (wrench.force, wrench.torque, wrench.point):
            np.testing.assert_array_equal(vector, np.zeros(3))
    assert len(engine.state.direction_buffer) == 0


@pytest.mark.parametrize("method", ["ne", "id"])
def test_left_swing_loads_right_leg(model, make_sample, ready_detector, method):
    engine = GRFMPrediction(model, GRFMParameters(method=method), ready_detector(GaitPhase.LEFT_SWING))
    output = engine.solve(make_sample(0.5))
    np.testing.assert_allclose(output.right.force, WEIGHT, atol=1e-9)
    np.testing.assert_array_equal(output.left.force, np.zeros(3))
    np.testing.assert_array_equal(output.left.torque, np.zeros(3))


def test_right_swing_loads_left_leg(engine, make_sample, ready_detector):
    engine.detector = ready_detector(GaitPhase.RIGHT_SWING)
    output = engine.solve(make_sample(0.5))
    np.testing.assert_allclose(output.left.force, WEIGHT, atol=1e-9)
    np.testing.assert_allclose(output.left.torque, 0.0, atol=1e-12)
    np.testing.assert_array_equal(output.right.force, np.zeros(3))
    np.testing.assert_array_equal(output.right.torque, np.zeros(3))


def test_heel_strike_latches_anchor(engine, make_sample, ready_detector):
    engine.detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.RIGHT, heel_strike_time=1.0)
    output = engine.solve(make_sample(1.0))
    np.testing.assert_allclose(engine.state.force_at_heel_strike, WEIGHT, atol=1e-9)
    # trailing (left) leg still carries the whole load at heel strike
    np.testing.assert_allclose(output.left.force, WEIGHT, atol=1e-9)
    np.testing.assert_allclose(output.right.force, 0.0, atol=1e-9)


def test_double_support_transfers_load(engine, make_sample, ready_detector):
    detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.LEFT, heel_strike_time=1.0, Tds=0.2)
    engine.detector = detector
    engine.solve(make_sample(1.0))
    output = engine.solve(make_sample(1.1))
    share = reaction_component_transition(0.1, 0.2)
    np.testing.assert_allclose(output.right.force, share * WEIGHT, atol=1e-9)
    np.testing.assert_allclose(output.right.force + output.left.force, WEIGHT, atol=1e-9)
    assert engine.state.Tds == 0.2 and engine.state.Tss == 0.4


def test_anchor_held_until_next_heel_strike(engine, make_sample, ready_detector):
    engine.detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.RIGHT, heel_strike_time=0.0)
    engine.solve(make_sample(0.0))
    anchor = engine.state.force_at_heel_strike.copy()
    engine.solve(make_sample(0.05))
    np.testing.assert_array_equal(engine.state.force_at_heel_strike, anchor)


def test_heel_strike_tolerance(model, make_sample, ready_detector):
    detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.RIGHT, heel_strike_time=1.0)
    exact = GRFMPrediction(model, GRFMParameters(), detector)
    exact.solve(make_sample(1.0 + 1e-9))
    np.testing.assert_array_equal(exact.state.force_at_heel_strike, np.zeros(3))

    tolerant = GRFMPrediction(model, GRFMParameters(heel_strike_tolerance=1e-6), detector)
    tolerant.solve(make_sample(1.0 + 1e-9))
    np.testing.assert_allclose(tolerant.state.force_at_heel_strike, WEIGHT, atol=1e-9)


def test_invalid_leading_leg_leaves_zeros(engine, make_sample, ready_detector, caplog):
    engine.detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.INVALID)
    output = engine.solve(make_sample(0.0))
    for wrench in (output.right, output.left):
        np.testing.assert_array_equal(wrench.force, np.zeros(3))
        np.testing.assert_array_equal(wrench.point, np.zeros(3))
    assert "invalid leading leg" in caplog.text

    # the stream keeps going
    engine.detector = ready_detector(GaitPhase.LEFT_SWING)
    output = engine.solve(make_sample(0.01))
    np.testing.assert_allclose(output.right.force, WEIGHT, atol=1e-9)


def test_double_support_cop(engine, model, standing_q, make_sample, ready_detector):
    stations = _stations(model, standing_q)
    engine.detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.RIGHT)
    output = engine.solve(make_sample(0.0))
    np.testing.assert_allclose(output.right.point, stations["toe_r"], atol=1e-12)
    np.testing.assert_allclose(output.left.point, stations["heel_l"], atol=1e-12)


def test_single_support_cop_rolls_from_heel(engine, model, standing_q, make_sample, ready_detector):
    stations = _stations(model, standing_q)
    engine.detector = ready_detector(GaitPhase.LEFT_SWING, toe_off_time=2.0, Tss=0.4)
    output = engine.solve(make_sample(2.2))
    d = stations["toe_r"] - stations["heel_r"]
    np.testing.assert_allclose(output.right.point, stations["heel_r"] + cop_position(0.2, d, 0.4),
                               atol=1e-12)
    np.testing.assert_allclose(output.right.point, [0.03, 0.0, 0.085], atol=1e-12)
    np.testing.assert_array_equal(output.left.point, np.zeros(3))


def test_explicit_state_is_used(engine, make_sample, ready_detector):
    engine.detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.RIGHT, heel_strike_time=0.0)
    state = PredictionState.create(3)
    engine.solve(make_sample(0.0), state=state)
    assert len(state.direction_buffer) == 1
    np.testing.assert_allclose(state.force_at_heel_strike, WEIGHT, atol=1e-9)
    assert len(engine.state.direction_buffer) == 0
    np.testing.assert_array_equal(engine.state.force_at_heel_strike, np.zeros(3))


def test_reset_clears_state(engine, make_sample, ready_detector):
    engine.detector = ready_detector(GaitPhase.DOUBLE_SUPPORT, LeadingLeg.RIGHT, heel_strike_time=0.0)
    engine.solve(make_sample(0.0))
    engine.reset()
    assert len(engine.state.direction_buffer) == 0
    assert engine.state.Tds == 0.0
    np.testing.assert_array_equal(engine.state.force_at_heel_strike, np.zeros(3))


def _yawed_sample(model, standing_q, yaw, coordinate, acceleration):
    q = standing_q.copy()
    q[model.coordinate_names.index("pelvis_r2")] = yaw
    q_ddot = np.zeros(model.nq)
    q_ddot[model.coordinate_names.index(coordinate)] = acceleration
    return GRFMInput(t=0.0, q=q, q_dot=np.zeros(model.nq), q_ddot=q_ddot)


@pytest.mark.parametrize("method", ["ne", "id"])
def test_force_expressed_in_walking_direction(model, standing_q, ready_detector, method):
    yaw, a = 0.5, 1.0
    engine = GRFMPrediction(model, GRFMParameters(method=method), ready_detector(GaitPhase.LEFT_SWING))
    output = engine.solve(_yawed_sample(model, standing_q, yaw, "pelvis_tx", a))
    # ground x acceleration seen from a heading yawed by 0.5 rad
    expected = [a * 75.0 * np.cos(yaw), 75.0 * 9.81, a * 75.0 * np.sin(yaw)]
    np.testing.assert_allclose(output.right.force, expected, atol=1e-9)


def test_moment_expressed_in_walking_direction(engine, model, standing_q, ready_detector):
    yaw, alpha = 0.5, 2.0
    engine.detector = ready_detector(GaitPhase.LEFT_SWING)
    output = engine.solve(_yawed_sample(model, standing_q, yaw, "pelvis_r0", alpha))
    # whole body spins rigidly about ground Z with zero angular velocity
    I_total = sum(model.inertia(name) for name in model.body_names)
    moment_ground = I_total @ [0.0, 0.0, alpha]
    R = Rotation.from_rotvec([0.0, -yaw, 0.0]).as_matrix()
    np.testing.assert_allclose(output.right.torque, R @ moment_ground, atol=1e-9)
    assert not np.allclose(output.right.torque, moment_ground)



def test_output_row(engine, make_sample, ready_detector):
    engine.detector = ready_detector(GaitPhase.LEFT_SWING)
    row = engine.solve(make_sample(0.25)).as_row()
    assert row["time"] == 0.25
    assert row["right_force_y"] == pytest.approx(WEIGHT[1])
    assert row["left_point_z"] == 0.0
    assert len(row) == 19


def test_bad_configuration_fails_at_construction(model):
    with pytest.raises(ConfigurationError):
        GRFMPrediction(model, GRFMParameters(method="bogus"), GaitPhaseSnapshot())
    with pytest.raises(ConfigurationError, match="not found"):
        GRFMPrediction(model, GRFMParameters(pelvis_body_name="torso"), GaitPhaseSnapshot())
    with pytest.raises(ConfigurationError):
        GRFMPrediction(model, GRFMParameters(direction_window_size=0), GaitPhaseSnapshot())
    with pytest.raises(ConfigurationError):
        GRFMParameters(r_heel_station_location=[0.0, 0.0])
