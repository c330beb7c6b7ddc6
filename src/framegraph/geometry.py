"""Rigid poses used as the value of static and example transforms."""

from typing import Any, Self

import numpy as np
import numpy.typing as npt
from pytransform3d.transformations import concat, invert_transform, transform_from
from scipy.spatial.transform import Rotation
from skspatial.objects import Vector

# Anything accepted where a rotation is expected: a scipy Rotation, a
# scalar-last quaternion (x, y, z, w) or a 3x3 rotation matrix.
RotationLike = Rotation | npt.ArrayLike


def as_rotation(rotation: RotationLike | None) -> Rotation:
    """Convert a rotation-like value to a scipy Rotation.

    Raises:
        ValueError: If the value is neither a quaternion nor a 3x3 matrix.

    """
    if rotation is None:
        return Rotation.identity()
    if isinstance(rotation, Rotation):
        return rotation
    array = np.array(rotation, dtype=float)
    if array.shape == (4,):
        return Rotation.from_quat(array)
    if array.shape == (3, 3):
        return Rotation.from_matrix(array)
    raise ValueError(f"Expected a quaternion or a 3x3 matrix, got shape {array.shape}")


class Pose:
    """An immutable rigid transformation (rotation followed by translation).

    A pose attached to an edge ``A => B`` maps coordinates expressed in ``A``
    into ``B``, i.e. it is the pose of ``A`` in ``B``. Poses compose like their
    homogeneous matrices: ``(a * b).as_matrix() == a.as_matrix() @ b.as_matrix()``.
    """

    __slots__ = ("_rotation", "_translation")

    def __init__(
        self,
        translation: npt.ArrayLike = (0.0, 0.0, 0.0),
        rotation: RotationLike | None = None,
    ) -> None:
        translation = np.array(translation, dtype=float)
        if translation.shape != (3,):
            raise ValueError(f"Expected a 3D translation, got shape {translation.shape}")
        translation.setflags(write=False)
        self._translation = translation
        self._rotation = as_rotation(rotation)

    @classmethod
    def identity(cls) -> Self:
        return cls()

    @classmethod
    def from_xyz_rpy(cls, values: npt.ArrayLike) -> Self:
        """Build a pose from ``[x, y, z, roll, pitch, yaw]`` (extrinsic XYZ, radians)."""
        values = np.array(values, dtype=float)
        if values.shape != (6,):
            raise ValueError(f"Expected 6 values (x y z roll pitch yaw), got {values.shape}")
        return cls(values[:3], Rotation.from_euler("xyz", values[3:]))

    @classmethod
    def from_matrix(cls, matrix: npt.ArrayLike) -> Self:
        """Build a pose from a 4x4 homogeneous transformation matrix."""
        matrix = np.array(matrix, dtype=float)
        return cls(matrix[:3, 3], Rotation.from_matrix(matrix[:3, :3]))

    @classmethod
    def from_axis_angle(cls, axis: npt.ArrayLike, angle: float) -> Self:
        """A pure rotation of ``angle`` radians about ``axis``."""
        return cls(rotation=Rotation.from_rotvec(np.asarray(Vector(axis).unit()) * angle))

    @classmethod
    def from_axis_offset(cls, axis: npt.ArrayLike, offset: float) -> Self:
        """A pure translation of ``offset`` along ``axis``."""
        return cls(np.asarray(Vector(axis).unit()) * offset)

    @property
    def translation(self) -> npt.NDArray[np.floating[Any]]:
        return self._translation

    @property
    def rotation(self) -> Rotation:
        return self._rotation

    @property
    def quaternion(self) -> npt.NDArray[np.floating[Any]]:
        """The rotation as a scalar-last quaternion (x, y, z, w)."""
        return self._rotation.as_quat()

    def as_matrix(self) -> npt.NDArray[np.floating[Any]]:
        """Return the 4x4 homogeneous transformation matrix."""
        return transform_from(self._rotation.as_matrix(), self._translation)

    def inverse(self) -> "Pose":
        return Pose.from_matrix(invert_transform(self.as_matrix()))

    def apply(self, points: npt.ArrayLike) -> npt.NDArray[np.floating[Any]]:
        """Transform a point (shape (3,)) or an array of points (shape (n, 3))."""
        # scipy refuses read-only buffers, such as the translation of another pose
        return self._rotation.apply(np.array(points, dtype=float)) + self._translation

    def __mul__(self, other: object) -> "Pose":
        if not isinstance(other, Pose):
            return NotImplemented
        return Pose.from_matrix(concat(other.as_matrix(), self.as_matrix()))

    def approx_equal(self, other: "Pose", atol: float = 1e-9) -> bool:
        """Whether two poses represent the same transformation up to ``atol``."""
        return bool(np.allclose(self.as_matrix(), other.as_matrix(), atol=atol))

    def __repr__(self) -> str:
        x, y, z = self._translation
        qx, qy, qz, qw = self.quaternion
        return (
            f"Pose(translation=[{x:g}, {y:g}, {z:g}], "
            f"quaternion=[{qx:g}, {qy:g}, {qz:g}, {qw:g}])"
        )
