"""
model.py
--------
Rigid-body model seam of the GRFM engine.

`BiomechanicalModel` is everything the engine asks of a musculoskeletal model:
state update, dynamics-stage quantities, Jacobian propagation of body
velocities/accelerations, the inverse-dynamics residual and station queries.

`SegmentTreeModel` implements it for a tree of rigid segments:
- floating root (rotation coordinates + 3 translations of the root COM)
- sequences of revolute axes (1-3) for every other joint
- body frames located at the segment COM
- gravity applied as a rigid-body force, like a simulator force element

We also provide:
- De Leva anthropometric helpers (masses, COM fractions, radii of gyration)
- `lower_body_model()`: pelvis + two legs (femur, tibia, calcn per side)

Spatial vectors are (2,3) arrays [angular, linear] in the ground frame, Y up.
Generalized speeds are the coordinate derivatives (u == qDot).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional
import numpy as np
from scipy.spatial.transform import Rotation

GRAVITY = np.array([0.0, -9.81, 0.0])  # +Y up (ground)

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])

# pelvis tilt/list/rotation and hip flexion/adduction/rotation (Y up, Z right)
PELVIS_AXES = np.array([Z_AXIS, X_AXIS, Y_AXIS])
HIP_AXES = np.array([Z_AXIS, X_AXIS, Y_AXIS])

# realization stages
STAGE_EMPTY, STAGE_VELOCITY, STAGE_DYNAMICS = 0, 1, 2


# -------------------------------
# Data structures
# -------------------------------

@dataclass
class InertialProps:
    """Inertial properties about COM in the segment *body* frame."""
    mass: float               # [kg]
    I_body_COM: np.ndarray    # (3,3) inertia tensor about COM in body axes


@dataclass
class Segment:
    """One rigid segment and the joint attaching it to its parent.
    name: body name
    props: InertialProps
    parent: parent body name, None for the floating root
    axes: (k,3) joint rotation axes, applied in sequence (body-fixed)
    r_parent_joint: (3,) joint location in the parent frame, from parent COM [m]
    r_child_joint: (3,) joint location in this body's frame, from this COM [m]
    """
    name: str
    props: InertialProps
    parent: Optional[str] = None
    axes: np.ndarray = field(default_factory=lambda: np.eye(3))
    r_parent_joint: np.ndarray = field(default_factory=lambda: np.zeros(3))
    r_child_joint: np.ndarray = field(default_factory=lambda: np.zeros(3))


# -------------------------------
# Anthropometrics (De Leva 1996)
# -------------------------------

def deleva_lower_limb_fractions():
    """Return mass fraction, COM location fraction (from proximal joint toward distal),
    and radii of gyration fractions (about segment length) for foot, shank, thigh.
    """
    return {
        "foot":  dict(mass=0.0145, com=0.5,   kx=0.475, ky=0.302, kz=0.475),
        "shank": dict(mass=0.0465, com=0.433, kx=0.302, ky=0.267, kz=0.302),
        "thigh": dict(mass=0.1416, com=0.433, kx=0.323, ky=0.323, kz=0.323),
    }


# pelvis carries head, arms and trunk; radii about an equivalent trunk length
HAT_LENGTH = 0.80      # [m] at 1.75 m stature
HAT_RADII = (0.30, 0.18, 0.29)


def inertia_from_radii(m, L, kx, ky, kz):
    """Approximate inertia tensor about COM in body axes assuming principal axes aligned
    with segment frame and radii of gyration (fractions of segment length)."""
    return np.diag([m * (kx * L)**2, m * (ky * L)**2, m * (kz * L)**2])


def make_inertial_props(mass_kg, seg_length_m, seg_name):
    params = deleva_lower_limb_fractions()[seg_name]
    m = params["mass"] * mass_kg
    I_body = inertia_from_radii(m, seg_length_m, params["kx"], params["ky"], params["kz"])
    return InertialProps(mass=m, I_body_COM=I_body)


def world_inertia(R_WB, I_body_COM):
    """Rotate body inertia to world frame: I_W = R * I_body * R^T"""
    return R_WB @ I_body_COM @ R_WB.T


def foot_station_offsets(height_m=1.75):
    """Heel and metatarsal (toe) points of `lower_body_model` feet, in the calcn frame."""
    scale = height_m / 1.75
    L_foot, heel_to_ankle = 0.25 * scale, 0.07 * scale
    heel = np.array([-0.5 * L_foot, -0.5 * heel_to_ankle, 0.0])
    toe = np.array([0.3 * L_foot, -0.5 * heel_to_ankle, 0.0])
    return heel, toe


def lower_body_model(height_m=1.75, mass_kg=75.0, gravity=GRAVITY):
    """Pelvis (with HAT mass) and two legs: femur_*, tibia_*, calcn_* for * in (r, l).

    All coordinates zero is upright standing with the pelvis COM at the ground origin;
    set the pelvis y translation to 0.95 * height_m / 1.75 to put the soles on y = 0.
    """
    scale = height_m / 1.75
    L_th, L_sh, L_fo = 0.45 * scale, 0.43 * scale, 0.25 * scale
    heel_to_ankle = 0.07 * scale
    hip_width = 0.085 * scale
    fr = deleva_lower_limb_fractions()

    leg_fraction = sum(fr[s]["mass"] for s in ("foot", "shank", "thigh"))
    m_pelvis = mass_kg * (1.0 - 2.0 * leg_fraction)
    pelvis = InertialProps(mass=m_pelvis,
                           I_body_COM=inertia_from_radii(m_pelvis, HAT_LENGTH * scale, *HAT_RADII))

    c_th, c_sh = fr["thigh"]["com"], fr["shank"]["com"]
    segments = [Segment("pelvis", pelvis, axes=PELVIS_AXES)]
    for side, sign in (("r", 1.0), ("l", -1.0)):
        segments += [
            Segment(f"femur_{side}", make_inertial_props(mass_kg, L_th, "thigh"),
                    parent="pelvis", axes=HIP_AXES,
                    r_parent_joint=np.array([0.0, 0.0, sign * hip_width]),
                    r_child_joint=np.array([0.0, c_th * L_th, 0.0])),
            Segment(f"tibia_{side}", make_inertial_props(mass_kg, L_sh, "shank"),
                    parent=f"femur_{side}", axes=[Z_AXIS],
                    r_parent_joint=np.array([0.0, -(1.0 - c_th) * L_th, 0.0]),
                    r_child_joint=np.array([0.0, c_sh * L_sh, 0.0])),
            # foot COM halfway between heel and toe tips, halfway down to the sole
            Segment(f"calcn_{side}", make_inertial_props(mass_kg, L_fo, "foot"),
                    parent=f"tibia_{side}", axes=[Z_AXIS],
                    r_parent_joint=np.array([0.0, -(1.0 - c_sh) * L_sh, 0.0]),
                    r_child_joint=np.array([heel_to_ankle - 0.5 * L_fo, 0.5 * heel_to_ankle, 0.0])),
        ]
    return SegmentTreeModel(segments, gravity=gravity)


# -------------------------------
# Model contract
# -------------------------------

class BiomechanicalModel(ABC):
    """Kinematic/dynamic queries the GRFM engine performs once per sample.

    The caller owns the model; the engine updates it in place through
    `update_state` + `realize_dynamics` and then only reads from it.
    """

    @property
    @abstractmethod
    def body_names(self):
        """Names of all bodies, ordered by mobilized body index."""

    @property
    @abstractmethod
    def coordinate_names(self):
        """Names of the generalized coordinates, in q order."""

    @property
    @abstractmethod
    def gravity(self):
        """(3,) gravity acceleration in ground."""

    @abstractmethod
    def update_state(self, q, q_dot, q_ddot):
        """Set generalized coordinates, speeds and accelerations; realize positions/velocities."""

    @abstractmethod
    def realize_dynamics(self):
        """Compute dynamics-stage quantities (inertias, applied forces)."""

    @abstractmethod
    def mobilized_body_index(self, name):
        """Row of `name` in the per-body arrays returned below."""

    @abstractmethod
    def mass(self, name):
        """Body mass [kg]."""

    @abstractmethod
    def inertia(self, name):
        """(3,3) inertia about the body COM, ground axes."""

    @abstractmethod
    def multiply_by_system_jacobian(self, u):
        """(n_bodies,2,3) spatial vectors J*u, measured at the body origins."""

    @abstractmethod
    def calc_body_acceleration_from_udot(self, udot):
        """(n_bodies,2,3) body spatial accelerations, velocity-dependent terms included."""

    @abstractmethod
    def mobility_forces(self):
        """(nu,) generalized forces applied by model components (actuators...)."""

    @abstractmethod
    def rigid_body_forces(self):
        """(n_bodies,2,3) applied spatial forces [moment, force] at the body origins."""

    @abstractmethod
    def calc_residual_force(self, mobility_forces, body_forces, udot):
        """(nu,) generalized forces needed for `udot` given the applied forces
        (M*udot + C - applied), constraints ignored."""

    @abstractmethod
    def body_transform(self, name):
        """(R_GB, p_GB): orientation (3,3) and origin (3,) of the body in ground."""

    @abstractmethod
    def station_location_in_ground(self, name, offset):
        """Ground location (3,) of a point fixed in body `name` at `offset` (body frame)."""


# -------------------------------
# Segment tree implementation
# -------------------------------

def _topological_order(segments):
    by_name = {}
    for s in segments:
        if s.name in by_name:
            raise ValueError(f"Duplicate segment name {s.name!r}")
        by_name[s.name] = s
    roots = [s for s in segments if s.parent is None]
    if len(roots) != 1:
        raise ValueError(f"Expected exactly one root segment, found {[s.name for s in roots]}")
    for s in segments:
        if s.parent is not None and s.parent not in by_name:
            raise ValueError(f"Segment {s.name!r} has unknown parent {s.parent!r}")
    ordered = [roots[0]]
    i = 0
    while i < len(ordered):
        ordered += [s for s in segments if s.parent == ordered[i].name]
        i += 1
    if len(ordered) != len(segments):
        raise ValueError("Segment tree contains a cycle")
    return ordered


class SegmentTreeModel(BiomechanicalModel):
    """Tree of rigid segments driven by joint angles (see module docstring)."""

    def __init__(self, segments, gravity=GRAVITY):
        self._segments = _topological_order(list(segments))
        self._index = {s.name: i for i, s in enumerate(self._segments)}
        self._parent = [-1 if s.parent is None else self._index[s.parent] for s in self._segments]
        self._gravity = np.asarray(gravity, dtype=float)

        self._axes = []
        self._slices = []
        names = []
        start = 0
        for s in self._segments:
            axes = np.atleast_2d(np.asarray(s.axes, dtype=float))
            axes = axes / np.linalg.norm(axes, axis=1)[:, None]
            self._axes.append(axes)
            n = len(axes)
            names += [f"{s.name}_r{k}" for k in range(n)]
            if s.parent is None:
                names += [f"{s.name}_t{c}" for c in "xyz"]
                n += 3
            self._slices.append(slice(start, start + n))
            start += n
        self._coordinate_names = names
        self.nq = start

        n_bodies = len(self._segments)
        self._R = np.tile(np.eye(3), (n_bodies, 1, 1))
        self._x = np.zeros((n_bodies, 3))       # body origin (COM)
        self._joint = np.zeros((n_bodies, 3))   # joint point to the parent
        self._H = [np.zeros_like(a) for a in self._axes]  # joint axes in ground
        self._V = np.zeros((n_bodies, 2, 3))
        self._I = np.zeros((n_bodies, 3, 3))
        self._u = np.zeros(self.nq)
        self._stage = STAGE_EMPTY

    # ---- bookkeeping ----

    @property
    def body_names(self):
        return [s.name for s in self._segments]

    @property
    def coordinate_names(self):
        return list(self._coordinate_names)

    @property
    def gravity(self):
        return self._gravity.copy()

    def mobilized_body_index(self, name):
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"Unknown body {name!r}. Known bodies: {self.body_names}") from None

    def _vector(self, v, label):
        v = np.asarray(v, dtype=float).ravel()
        if v.shape != (self.nq,):
            raise ValueError(f"{label} must have {self.nq} entries, got {v.shape[0]}")
        return v

    def _require(self, stage, what):
        if self._stage < stage:
            raise RuntimeError(f"{what} requires the model state to be realized first "
                               f"(call update_state/realize_dynamics)")

    def mass(self, name):
        return self._segments[self.mobilized_body_index(name)].props.mass

    def inertia(self, name):
        i = self.mobilized_body_index(name)
        return world_inertia(self._R[i], self._segments[i].props.I_body_COM)

    # ---- kinematics ----

    def update_state(self, q, q_dot, q_ddot):
        q = self._vector(q, "q")
        self._u = self._vector(q_dot, "q_dot")
        self._vector(q_ddot, "q_ddot")

        for i, seg in enumerate(self._segments):
            p = self._parent[i]
            qi = q[self._slices[i]]
            axes = self._axes[i]
            R = np.eye(3) if p < 0 else self._R[p].copy()
            H = np.empty_like(axes)
            for k, axis in enumerate(axes):
                H[k] = R @ axis
                R = R @ Rotation.from_rotvec(qi[k] * axis).as_matrix()
            self._R[i] = R
            self._H[i] = H
            if p < 0:
                self._x[i] = qi[len(axes):]
                self._joint[i] = self._x[i]
            else:
                self._joint[i] = self._x[p] + self._R[p] @ seg.r_parent_joint
                self._x[i] = self._joint[i] - R @ seg.r_child_joint

        self._stage = STAGE_VELOCITY
        self._V = self.multiply_by_system_jacobian(self._u)

    def multiply_by_system_jacobian(self, u):
        self._require(STAGE_VELOCITY, "multiply_by_system_jacobian")
        u = self._vector(u, "u")
        out = np.zeros((len(self._segments), 2, 3))
        for i in range(len(self._segments)):
            p = self._parent[i]
            ui = u[self._slices[i]]
            H = self._H[i]
            k = len(H)
            w = H.T @ ui[:k]
            if p < 0:
                out[i, 0] = w
                out[i, 1] = ui[k:]
            else:
                out[i, 0] = out[p, 0] + w
                out[i, 1] = (out[p, 1] + np.cross(out[p, 0], self._joint[i] - self._x[p])
                             + np.cross(out[i, 0], self._x[i] - self._joint[i]))
        return out

    def calc_body_acceleration_from_udot(self, udot):
        self._require(STAGE_VELOCITY, "calc_body_acceleration_from_udot")
        udot = self._vector(udot, "udot")
        A = np.zeros((len(self._segments), 2, 3))
        for i in range(len(self._segments)):
            p = self._parent[i]
            ui, ai = self._u[self._slices[i]], udot[self._slices[i]]
            H = self._H[i]
            k = len(H)
            # each axis rotates with the frame before it: d/dt h_k = w_{k-1} x h_k
            w = np.zeros(3) if p < 0 else self._V[p, 0].copy()
            alpha = np.zeros(3) if p < 0 else A[p, 0].copy()
            for j in range(k):
                alpha += H[j] * ai[j] + np.cross(w, H[j]) * ui[j]
                w = w + H[j] * ui[j]
            A[i, 0] = alpha
            if p < 0:
                A[i, 1] = ai[k:]
            else:
                d1 = self._joint[i] - self._x[p]
                d2 = self._x[i] - self._joint[i]
                wp, wi = self._V[p, 0], self._V[i, 0]
                A[i, 1] = (A[p, 1] + np.cross(A[p, 0], d1) + np.cross(wp, np.cross(wp, d1))
                           + np.cross(alpha, d2) + np.cross(wi, np.cross(wi, d2)))
        return A

    def body_transform(self, name):
        i = self.mobilized_body_index(name)
        self._require(STAGE_VELOCITY, "body_transform")
        return self._R[i].copy(), self._x[i].copy()

    def station_location_in_ground(self, name, offset):
        R, p = self.body_transform(name)
        return p + R @ np.asarray(offset, dtype=float)

    # ---- dynamics ----

    def realize_dynamics(self):
        self._require(STAGE_VELOCITY, "realize_dynamics")
        for i, seg in enumerate(self._segments):
            self._I[i] = world_inertia(self._R[i], seg.props.I_body_COM)
        self._stage = STAGE_DYNAMICS

    def mobility_forces(self):
        # no actuators: muscles and motors apply nothing
        self._require(STAGE_DYNAMICS, "mobility_forces")
        return np.zeros(self.nq)

    def rigid_body_forces(self):
        self._require(STAGE_DYNAMICS, "rigid_body_forces")
        F = np.zeros((len(self._segments), 2, 3))
        for i, seg in enumerate(self._segments):
            F[i, 1] = seg.props.mass * self._gravity
        return F

    def calc_residual_force(self, mobility_forces, body_forces, udot):
        """Recursive Newton-Euler: per-body inertial wrenches, accumulated leaf→root,
        projected on the joint axes."""
        self._require(STAGE_DYNAMICS, "calc_residual_force")
        A = self.calc_body_acceleration_from_udot(udot)
        body_forces = np.asarray(body_forces, dtype=float)
        n_bodies = len(self._segments)

        F = np.zeros((n_bodies, 3))
        N = np.zeros((n_bodies, 3))  # about the body COM
        for i, seg in enumerate(self._segments):
            I, w = self._I[i], self._V[i, 0]
            F[i] = seg.props.mass * A[i, 1] - body_forces[i, 1]
            N[i] = I @ A[i, 0] + np.cross(w, I @ w) - body_forces[i, 0]

        # children come after parents in topological order
        for i in reversed(range(n_bodies)):
            p = self._parent[i]
            if p >= 0:
                F[p] += F[i]
                N[p] += N[i] + np.cross(self._x[i] - self._x[p], F[i])

        tau = np.zeros(self.nq)
        for i in range(n_bodies):
            start = self._slices[i].start
            H = self._H[i]
            k = len(H)
            if self._parent[i] < 0:
                tau[start:start + k] = H @ N[i]
                tau[start + k:start + k + 3] = F[i]
            else:
                N_joint = N[i] + np.cross(self._x[i] - self._joint[i], F[i])
                tau[start:start + k] = H @ N_joint
        return tau - self._vector(mobility_forces, "mobility_forces")
