"""
reactions.py
------------
Total external reaction (force, moment) acting on the body, from kinematics only.

Two interchangeable estimators of the same quantity:
- inverse dynamics: residual generalized forces with every applied force
  (gravity included) known, mapped through the system Jacobian and read at the
  pelvis, the body carrying the floating base
- Newton-Euler summation over all bodies:
    F_ext = sum m * (a - g)
    M_ext = sum I * alpha + omega x (I * omega)

Numerical differences between the two are expected.
"""

import logging
from enum import Enum
import numpy as np

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Method(Enum):
    NEWTON_EULER = "newton_euler"
    INVERSE_DYNAMICS = "inverse_dynamics"


# lower-case aliases accepted by select_method
NEWTON_EULER_NAMES = ("newtoneuler", "newton-euler", "newton_euler", "ne")
INVERSE_DYNAMICS_NAMES = ("inversedynamics", "inverse-dynamics", "inverse_dynamics", "id")


def select_method(name):
    """Resolve a method name (case-insensitive alias) to a `Method`.
    Raises ConfigurationError for anything else; there is no default."""
    if isinstance(name, Method):
        return name
    key = str(name).lower()
    if key in NEWTON_EULER_NAMES:
        return Method.NEWTON_EULER
    if key in INVERSE_DYNAMICS_NAMES:
        return Method.INVERSE_DYNAMICS
    raise ConfigurationError(
        f"Unknown reaction estimation method {name!r}. "
        f"Use one of {NEWTON_EULER_NAMES + INVERSE_DYNAMICS_NAMES}"
    )


def inverse_dynamics_reaction(model, q_ddot, pelvis_body_name):
    """Total reaction from the inverse-dynamics residual at the pelvis."""
    tau = model.calc_residual_force(model.mobility_forces(), model.rigid_body_forces(), q_ddot)
    spatial = model.multiply_by_system_jacobian(tau)
    idx = model.mobilized_body_index(pelvis_body_name)
    return spatial[idx, 1].copy(), spatial[idx, 0].copy()


def newton_euler_reaction(model, q_dot, q_ddot):
    """Total reaction as the sum of the Newton-Euler equations of every body."""
    V = model.multiply_by_system_jacobian(q_dot)
    A = model.calc_body_acceleration_from_udot(q_ddot)
    g = model.gravity
    force = np.zeros(3)
    moment = np.zeros(3)
    for name in model.body_names:
        i = model.mobilized_body_index(name)
        I = model.inertia(name)
        omega = V[i, 0]
        force += model.mass(name) * (A[i, 1] - g)
        moment += I @ A[i, 0] + np.cross(omega, I @ omega)
    return force, moment


def compute_total_reaction(method, model, sample, pelvis_body_name):
    """(force, moment) in ground for the realized model state of `sample`."""
    if method is Method.INVERSE_DYNAMICS:
        return inverse_dynamics_reaction(model, sample.q_ddot, pelvis_body_name)
    if method is Method.NEWTON_EULER:
        return newton_euler_reaction(model, sample.q_dot, sample.q_ddot)
    raise ConfigurationError(f"Unsupported method {method!r}")
