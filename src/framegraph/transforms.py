"""Transform kinds stored in a frame graph.

A transform always connects ``from_frame`` to ``to_frame``. The stored object
is never duplicated when it is looked up in the opposite direction: ``inverse()``
returns a view sharing the same payload with the ``inverted`` flag toggled.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import numpy as np
import numpy.typing as npt
from scipy.spatial.transform import Rotation

from framegraph.geometry import Pose


class TransformKind(str, Enum):
    """The three disjoint transform collections of a frame graph."""

    STATIC = "static"
    DYNAMIC = "dynamic"
    EXAMPLE = "example"


@dataclass(frozen=True, eq=False)
class Transform:
    """Base of all transform kinds. Transforms compare by identity."""

    from_frame: str
    to_frame: str
    inverted: bool = False

    kind: TransformKind = field(default=TransformKind.STATIC, init=False, repr=False)

    @property
    def frames(self) -> frozenset[str]:
        """The unordered frame pair identifying this edge."""
        return frozenset((self.from_frame, self.to_frame))

    def inverse(self) -> "Transform":
        """A view of this transform traversed from ``to_frame`` to ``from_frame``."""
        return replace(
            self,
            from_frame=self.to_frame,
            to_frame=self.from_frame,
            inverted=not self.inverted,
        )

    def oriented(self, from_frame: str) -> "Transform":
        """Return ``self`` or its inverse view, whichever starts at ``from_frame``."""
        if self.from_frame == from_frame:
            return self
        if self.to_frame == from_frame:
            return self.inverse()
        raise ValueError(f"'{from_frame}' is not an endpoint of {self!r}")

    def renamed(self, mapping: dict[str, str]) -> "Transform":
        """A copy with endpoints renamed according to ``mapping``."""
        return replace(
            self,
            from_frame=mapping.get(self.from_frame, self.from_frame),
            to_frame=mapping.get(self.to_frame, self.to_frame),
        )


@dataclass(frozen=True, eq=False)
class _PoseTransform(Transform):
    """A transform whose value is a known rigid pose."""

    pose: Pose = field(default_factory=Pose.identity)

    @property
    def effective_pose(self) -> Pose:
        """The pose of ``from_frame`` in ``to_frame`` for this direction."""
        return self.pose.inverse() if self.inverted else self.pose

    @property
    def translation(self) -> npt.NDArray[np.floating[Any]]:
        return self.effective_pose.translation

    @property
    def rotation(self) -> Rotation:
        return self.effective_pose.rotation

    def __repr__(self) -> str:
        direction = " (inverted)" if self.inverted else ""
        return (
            f"{type(self).__name__}({self.from_frame!r} => {self.to_frame!r}{direction}, "
            f"{self.pose!r})"
        )


@dataclass(frozen=True, eq=False, repr=False)
class StaticTransform(_PoseTransform):
    """A fixed rigid pose between two frames."""

    kind: TransformKind = field(default=TransformKind.STATIC, init=False, repr=False)


@dataclass(frozen=True, eq=False, repr=False)
class ExampleTransform(_PoseTransform):
    """An illustrative pose, never used to resolve transformation chains."""

    kind: TransformKind = field(default=TransformKind.EXAMPLE, init=False, repr=False)


@dataclass(frozen=True, eq=False)
class DynamicTransform(Transform):
    """A transform whose value is provided at runtime by ``producer``.

    The producer is opaque: it is only ever compared by identity or equality.
    """

    producer: Any = None
    kind: TransformKind = field(default=TransformKind.DYNAMIC, init=False, repr=False)

    def __repr__(self) -> str:
        direction = " (inverted)" if self.inverted else ""
        return (
            f"DynamicTransform({self.from_frame!r} => {self.to_frame!r}{direction}, "
            f"producer={self.producer!r})"
        )
