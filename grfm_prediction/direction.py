"""
direction.py
------------
Gait direction estimate: moving average of the pelvis heading.

The pelvis anterior axis (body x, expressed in ground) is pushed into a
fixed-size circular buffer once per sample. The mean heading, projected on the
horizontal plane, defines a yaw-only rotation that expresses the reaction
loads in a frame aligned with the walking direction.
"""

import numpy as np
from scipy.spatial.transform import Rotation

from .exceptions import ConfigurationError

VERTICAL = np.array([0.0, 1.0, 0.0])   # +Y up
FORWARD = np.array([1.0, 0.0, 0.0])


class CircularBuffer:
    """Fixed-capacity ring of vectors; `mean()` covers only the filled slots."""

    def __init__(self, capacity, dim=3):
        if int(capacity) < 1:
            raise ConfigurationError(f"Buffer capacity must be >= 1, got {capacity}")
        self._data = np.zeros((int(capacity), dim))
        self._head = 0
        self._size = 0

    @property
    def capacity(self):
        return self._data.shape[0]

    def __len__(self):
        return self._size

    def is_full(self):
        return self._size == self.capacity

    def insert(self, value):
        self._data[self._head] = value
        self._head = (self._head + 1) % self.capacity
        self._size = min(self._size + 1, self.capacity)

    def mean(self):
        if self._size == 0:
            return np.zeros(self._data.shape[1])
        # slots fill from index 0, so the first _size rows are the valid ones
        return self._data[:self._size].mean(axis=0)

    def clear(self):
        self._data[:] = 0.0
        self._head = 0
        self._size = 0


def projection_on_plane(point, plane_origin, plane_normal):
    """Orthogonal projection of `point` on the plane through `plane_origin`."""
    n = np.asarray(plane_normal, dtype=float)
    n = n / np.linalg.norm(n)
    point = np.asarray(point, dtype=float)
    return point - np.dot(point - plane_origin, n) * n


def heading_angle(heading, forward=FORWARD, vertical=VERTICAL):
    """Yaw that brings `heading` onto `forward`: atan(|h x f| / (h . f)),
    signed by the vertical component of h x f.
    Headings more than 90 degrees off `forward` (h . f < 0) are not fully
    aligned: atan folds them back into (-90, 90) degrees.
    """
    c = np.cross(heading, forward)
    d = np.dot(heading, forward)
    with np.errstate(divide="ignore"):
        q = np.arctan(np.linalg.norm(c) / d)
    return float(q if np.dot(c, vertical) >= 0.0 else -q)


def gait_direction_rotation(R_GB, buffer, forward=FORWARD, vertical=VERTICAL):
    """Push the body x-axis of `R_GB` into `buffer` and return the (3,3) rotation
    about the vertical axis aligning the mean horizontal heading with `forward`."""
    buffer.insert(R_GB[:, 0])
    heading = projection_on_plane(buffer.mean(), np.zeros(3), vertical)
    if np.linalg.norm(heading) < 1e-12:
        return np.eye(3)
    q = heading_angle(heading, forward, vertical)
    return Rotation.from_rotvec(q * vertical / np.linalg.norm(vertical)).as_matrix()
