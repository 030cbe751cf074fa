import numpy as np
import pytest

from grfm_prediction.gait_phase import GaitPhaseSnapshot, LeadingLeg
from grfm_prediction.model import lower_body_model
from grfm_prediction.prediction import GRFMInput, GRFMParameters, GRFMPrediction

BODY_MASS = 75.0
STANDING_FORCE = np.array([0.0, BODY_MASS * 9.81, 0.0])


@pytest.fixture
def model():
    return lower_body_model(height_m=1.75, mass_kg=BODY_MASS)


@pytest.fixture
def standing_q(model):
    q = np.zeros(model.nq)
    q[model.coordinate_names.index("pelvis_ty")] = 0.95
    return q


@pytest.fixture
def make_sample(model, standing_q):
    def _make(t, q=None):
        q = standing_q if q is None else q
        return GRFMInput(t=t, q=q, q_dot=np.zeros(model.nq), q_ddot=np.zeros(model.nq))
    return _make


@pytest.fixture
def random_state(model):
    rng = np.random.default_rng(7)
    q = rng.normal(scale=0.3, size=model.nq)
    q_dot = rng.normal(size=model.nq)
    q_ddot = rng.normal(size=model.nq)
    return q, q_dot, q_ddot


@pytest.fixture
def engine(model):
    return GRFMPrediction(model, GRFMParameters(), GaitPhaseSnapshot())


def snapshot(phase, leading_leg=LeadingLeg.INVALID, heel_strike_time=0.0, toe_off_time=0.0,
             Tds=0.2, Tss=0.4):
    return GaitPhaseSnapshot(
        ready=True,
        phase=phase,
        leading_leg=leading_leg,
        heel_strike_time=heel_strike_time,
        toe_off_time=toe_off_time,
        double_support_duration=Tds,
        single_support_duration=Tss,
    )


@pytest.fixture
def ready_detector():
    return snapshot
