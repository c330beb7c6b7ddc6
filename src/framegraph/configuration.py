"""Frame graph store: declared frames and the transforms between them."""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Self

import numpy.typing as npt
from pytransform3d.transform_manager import TransformManager

from framegraph.chain import Chain, ChainResolver
from framegraph.errors import DuplicateTransform, MissingFrame, TransformationNotFound
from framegraph.geometry import Pose, RotationLike
from framegraph.logging import get_logger
from framegraph.transforms import (
    DynamicTransform,
    ExampleTransform,
    StaticTransform,
    Transform,
    TransformKind,
)

logger = get_logger(__name__)

# Unordered frame pair identifying an edge, whatever its stored direction
FramePair = frozenset[str]


def _make_pose(translation: Pose | npt.ArrayLike, rotation: RotationLike | None) -> Pose:
    if isinstance(translation, Pose):
        if rotation is not None:
            raise TypeError("Cannot give a rotation together with a Pose")
        return translation
    return Pose(translation, rotation)


def _check_not_self_loop(transform: Transform) -> None:
    if transform.from_frame == transform.to_frame:
        raise ValueError(f"Renaming would connect '{transform.from_frame}' to itself")


def _renamed_edges(
    transforms: Iterable[Transform],
    mapping: Mapping[str, str],
    kind: TransformKind,
) -> dict[FramePair, Any]:
    renamed: dict[FramePair, Any] = {}
    for transform in transforms:
        transform = transform.renamed(mapping)
        _check_not_self_loop(transform)
        if transform.frames in renamed:
            raise DuplicateTransform(kind.value, transform.from_frame, transform.to_frame)
        renamed[transform.frames] = transform
    return renamed


class Configuration:
    """Set of named frames and the static, dynamic and example transforms between them.

    Each of the three transform collections holds at most one edge per unordered
    frame pair (example transforms excepted, of which any number may exist). An
    edge stored as ``a => b`` is also the edge ``b => a``: lookups in the
    opposite direction return an inverted view of the stored transform.
    """

    def __init__(self) -> None:
        """Initialize an empty configuration."""
        self._frames: dict[str, None] = {}
        self._static: dict[FramePair, StaticTransform] = {}
        self._dynamic: dict[FramePair, DynamicTransform] = {}
        self._example: list[ExampleTransform] = []
        self._joints: dict[tuple[str, str], Any] = {}

    # -- frames ---------------------------------------------------------------

    def declare_frames(self, *names: str) -> None:
        """Declare frames. Already known names are ignored.

        Raises:
            ValueError: If a name is empty or not a string.

        """
        for name in names:
            if not isinstance(name, str) or not name:
                raise ValueError(f"Frame names must be non-empty strings, got {name!r}")
            self._frames.setdefault(name, None)

    @property
    def frames(self) -> frozenset[str]:
        """All declared frame names."""
        return frozenset(self._frames)

    def has_frame(self, name: str) -> bool:
        return name in self._frames

    def check_frames(self, *names: str | None) -> None:
        """Check that every given frame is declared.

        Raises:
            MissingFrame: For the first name that is None or not declared.

        """
        for name in names:
            if name is None or name not in self._frames:
                raise MissingFrame(name)

    def __contains__(self, name: object) -> bool:
        """Check if a frame is declared: 'body' in conf"""
        return name in self._frames

    def __iter__(self) -> Iterator[str]:
        """Iterate over frame names in declaration order."""
        return iter(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    # -- transform registration ----------------------------------------------

    def static_transform(
        self,
        translation: Pose | npt.ArrayLike,
        rotation: RotationLike | None = None,
        *,
        from_frame: str,
        to_frame: str,
    ) -> StaticTransform:
        """Register a fixed rigid transform ``from_frame => to_frame``.

        Args:
            translation: The translation of ``from_frame`` in ``to_frame``, or a
                complete Pose.
            rotation: The rotation of ``from_frame`` in ``to_frame``. Defaults to
                identity.
            from_frame: The source frame, declared if unknown.
            to_frame: The destination frame, declared if unknown.

        Returns:
            The stored transform.

        Raises:
            DuplicateTransform: If a static transform already connects the two frames.

        """
        pair = self._check_pair(from_frame, to_frame)
        if pair in self._static:
            raise DuplicateTransform(TransformKind.STATIC.value, from_frame, to_frame)
        transform = StaticTransform(
            from_frame=from_frame,
            to_frame=to_frame,
            pose=_make_pose(translation, rotation),
        )
        self.declare_frames(from_frame, to_frame)
        self._static[pair] = transform
        return transform

    def identity_transform(self, *, from_frame: str, to_frame: str) -> StaticTransform:
        """Register a static transform with identity pose."""
        return self.static_transform(Pose.identity(), from_frame=from_frame, to_frame=to_frame)

    def dynamic_transform(
        self,
        producer: Any,
        *,
        from_frame: str,
        to_frame: str,
    ) -> DynamicTransform:
        """Register a transform ``from_frame => to_frame`` produced at runtime.

        Raises:
            DuplicateTransform: If a dynamic transform already connects the two frames.

        """
        pair = self._check_pair(from_frame, to_frame)
        if pair in self._dynamic:
            raise DuplicateTransform(TransformKind.DYNAMIC.value, from_frame, to_frame)
        transform = DynamicTransform(from_frame=from_frame, to_frame=to_frame, producer=producer)
        self.declare_frames(from_frame, to_frame)
        self._dynamic[pair] = transform
        return transform

    def example_transform(
        self,
        translation: Pose | npt.ArrayLike,
        rotation: RotationLike | None = None,
        *,
        from_frame: str,
        to_frame: str,
    ) -> ExampleTransform:
        """Register an illustrative transform, ignored when resolving chains."""
        self._check_pair(from_frame, to_frame)
        transform = ExampleTransform(
            from_frame=from_frame,
            to_frame=to_frame,
            pose=_make_pose(translation, rotation),
        )
        self.declare_frames(from_frame, to_frame)
        self._example.append(transform)
        return transform

    def _check_pair(self, from_frame: str, to_frame: str) -> FramePair:
        if from_frame == to_frame:
            raise ValueError(f"Cannot register a transform from '{from_frame}' to itself")
        return frozenset((from_frame, to_frame))

    # -- transform lookup ----------------------------------------------------

    def has_transform(self, from_frame: str, to_frame: str) -> bool:
        """Whether a static or dynamic transform connects the frames, in any direction."""
        pair = frozenset((from_frame, to_frame))
        return pair in self._static or pair in self._dynamic

    def transformation_for(self, from_frame: str, to_frame: str) -> StaticTransform | DynamicTransform:
        """Get the transform ``from_frame => to_frame``.

        The static transform is returned if there is one, the dynamic one
        otherwise. If it was registered in the opposite direction, an inverted
        view of the stored transform is returned.

        Raises:
            TransformationNotFound: If neither kind connects the two frames.

        """
        pair = frozenset((from_frame, to_frame))
        transform = self._static.get(pair) or self._dynamic.get(pair)
        if transform is None:
            raise TransformationNotFound(from_frame, to_frame)
        return transform.oriented(from_frame)

    def static_transform_for(self, from_frame: str, to_frame: str) -> StaticTransform:
        """Get the static transform ``from_frame => to_frame``.

        Raises:
            TransformationNotFound: If no static transform connects the two frames.

        """
        transform = self._static.get(frozenset((from_frame, to_frame)))
        if transform is None:
            raise TransformationNotFound(from_frame, to_frame)
        return transform.oriented(from_frame)

    def dynamic_transform_for(self, from_frame: str, to_frame: str) -> DynamicTransform:
        """Get the dynamic transform ``from_frame => to_frame``.

        Raises:
            TransformationNotFound: If no dynamic transform connects the two frames.

        """
        transform = self._dynamic.get(frozenset((from_frame, to_frame)))
        if transform is None:
            raise TransformationNotFound(from_frame, to_frame)
        return transform.oriented(from_frame)

    def example_transform_for(self, from_frame: str, to_frame: str) -> ExampleTransform:
        """Get the first registered example transform between the two frames.

        Raises:
            TransformationNotFound: If no example transform connects the two frames.

        """
        pair = frozenset((from_frame, to_frame))
        for transform in self._example:
            if transform.frames == pair:
                return transform.oriented(from_frame)
        raise TransformationNotFound(from_frame, to_frame)

    @property
    def static_transforms(self) -> tuple[StaticTransform, ...]:
        return tuple(self._static.values())

    @property
    def dynamic_transforms(self) -> tuple[DynamicTransform, ...]:
        return tuple(self._dynamic.values())

    @property
    def example_transforms(self) -> tuple[ExampleTransform, ...]:
        return tuple(self._example)

    @property
    def transforms(self) -> tuple[Transform, ...]:
        """Static and dynamic transforms, i.e. the edges usable in chains."""
        return (*self._static.values(), *self._dynamic.values())

    # -- joints ----------------------------------------------------------------

    def register_joint(self, post_frame: str, pre_frame: str, joint: Any) -> None:
        """Record which joint moves ``post_frame`` relative to ``pre_frame``."""
        self._joints[(post_frame, pre_frame)] = joint

    def joint_for(self, post_frame: str, pre_frame: str) -> Any:
        """Get the joint registered for a frame pair.

        Raises:
            KeyError: If no joint was registered for this pair.

        """
        try:
            return self._joints[(post_frame, pre_frame)]
        except KeyError:
            raise KeyError(f"No joint registered between '{post_frame}' and '{pre_frame}'") from None

    @property
    def joints(self) -> dict[tuple[str, str], Any]:
        """Copy of the (post_frame, pre_frame) to joint table."""
        return dict(self._joints)

    # -- whole-graph operations ----------------------------------------------

    def rename_frames(self, mapping: Mapping[str, str]) -> None:
        """Rename frames everywhere they appear.

        Names absent from ``mapping`` are left untouched. Nothing is modified
        if the renaming is rejected.

        Args:
            mapping: Dict mapping old frame names to new ones.

        Raises:
            DuplicateTransform: If two static (or two dynamic) transforms would
                end up connecting the same frames.
            ValueError: If a transform would connect a frame to itself, or two
                joints would be registered on the same frames.

        """
        mapping = dict(mapping)
        if not mapping:
            return
        static = _renamed_edges(self._static.values(), mapping, TransformKind.STATIC)
        dynamic = _renamed_edges(self._dynamic.values(), mapping, TransformKind.DYNAMIC)
        example = [t.renamed(mapping) for t in self._example]
        for transform in example:
            _check_not_self_loop(transform)
        joints: dict[tuple[str, str], Any] = {}
        for (post, pre), joint in self._joints.items():
            key = (mapping.get(post, post), mapping.get(pre, pre))
            if key in joints:
                raise ValueError(f"Renaming would register two joints between '{key[0]}' and '{key[1]}'")
            joints[key] = joint

        self._frames = dict.fromkeys(mapping.get(name, name) for name in self._frames)
        self._static = static
        self._dynamic = dynamic
        self._example = example
        self._joints = joints
        logger.debug("renamed frames", data={"mapping": mapping})

    def clear(self) -> None:
        """Remove all frames, transforms and joint registrations."""
        self._frames.clear()
        self._static.clear()
        self._dynamic.clear()
        self._example.clear()
        self._joints.clear()

    def dup(self) -> Self:
        """Return an independent copy.

        The frame set, the transform collections and the joint table are
        copied; the transforms themselves are immutable and shared.
        """
        copy = type(self)()
        copy._frames = dict(self._frames)
        copy._static = dict(self._static)
        copy._dynamic = dict(self._dynamic)
        copy._example = list(self._example)
        copy._joints = dict(self._joints)
        return copy

    __copy__ = dup

    # -- chain resolution ------------------------------------------------------

    def transformation_chain(
        self,
        from_frame: str,
        to_frame: str,
        overrides: Mapping[tuple[str, str], Any] | None = None,
    ) -> Chain:
        """Find a shortest chain of transforms, see ChainResolver.transformation_chain."""
        return ChainResolver(self).transformation_chain(from_frame, to_frame, overrides)

    def resolve_static_chain(self, from_frame: str, to_frame: str) -> Chain:
        """Find a shortest chain of static transforms only."""
        return ChainResolver(self).resolve_static_chain(from_frame, to_frame)

    def as_transform_manager(self, include_examples: bool = False) -> TransformManager:
        """Export the rigid part of the graph as a pytransform3d TransformManager.

        Args:
            include_examples: Also add the example transforms (after the static
                ones, skipping pairs that already have a static transform).

        Returns:
            A new TransformManager; dynamic transforms are not included.

        """
        tm = TransformManager()
        for transform in self._static.values():
            tm.add_transform(transform.from_frame, transform.to_frame, transform.pose.as_matrix())
        if include_examples:
            seen = set(self._static)
            for transform in self._example:
                if transform.frames in seen:
                    continue
                seen.add(transform.frames)
                tm.add_transform(transform.from_frame, transform.to_frame, transform.pose.as_matrix())
        return tm

    def __repr__(self) -> str:
        return (
            f"Configuration(frames={len(self._frames)}, static={len(self._static)}, "
            f"dynamic={len(self._dynamic)}, example={len(self._example)})"
        )

