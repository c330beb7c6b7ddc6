"""Resolution of transformation chains between two frames."""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple

import networkx as nx

from framegraph.errors import TransformationNotFound
from framegraph.geometry import Pose
from framegraph.logging import get_logger
from framegraph.transforms import DynamicTransform, Transform, TransformKind

if TYPE_CHECKING:
    from framegraph.configuration import Configuration

logger = get_logger(__name__)

# Per-call edge overrides: a frame pair mapped to a replacement producer, or
# to None to forbid the edge.
Overrides = Mapping[tuple[str, str], Any]


class ChainLink(NamedTuple):
    """One step of a chain: a stored transform and the traversal direction."""

    transform: Transform
    inverted: bool

    @property
    def from_frame(self) -> str:
        return self.transform.to_frame if self.inverted else self.transform.from_frame

    @property
    def to_frame(self) -> str:
        return self.transform.from_frame if self.inverted else self.transform.to_frame


@dataclass(frozen=True)
class Chain:
    """An ordered sequence of transforms leading from ``from_frame`` to ``to_frame``."""

    from_frame: str
    to_frame: str
    steps: tuple[ChainLink, ...] = ()

    @property
    def links(self) -> list[Transform]:
        """The transforms of the chain, as stored in the configuration."""
        return [step.transform for step in self.steps]

    @property
    def inversions(self) -> list[bool]:
        """For each link, whether it is traversed against its stored direction."""
        return [step.inverted for step in self.steps]

    def __iter__(self) -> Iterator[ChainLink]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def partition(self) -> tuple[list[ChainLink], list[ChainLink]]:
        """Split the chain into its static and its dynamic links, keeping chain order."""
        static: list[ChainLink] = []
        dynamic: list[ChainLink] = []
        for step in self.steps:
            match step.transform.kind:
                case TransformKind.STATIC:
                    static.append(step)
                case TransformKind.DYNAMIC:
                    dynamic.append(step)
                case TransformKind.EXAMPLE:
                    raise TypeError(f"Example transform in a resolved chain: {step.transform!r}")
        return static, dynamic

    def compose(self) -> Pose:
        """Multiply a fully static chain into the pose of ``from_frame`` in ``to_frame``.

        Raises:
            ValueError: If the chain contains a dynamic link.

        """
        pose = Pose.identity()
        for step in self.steps:
            match step.transform.kind:
                case TransformKind.STATIC:
                    stored = step.transform.pose
                    pose = (stored.inverse() if step.inverted else stored) * pose
                case TransformKind.DYNAMIC | TransformKind.EXAMPLE:
                    raise ValueError(
                        f"Cannot compose a chain containing {step.transform!r}",
                    )
        return pose


class ChainResolver:
    """Shortest-chain search over the static and dynamic transforms of a configuration.

    The resolver holds no state of its own beyond the configuration it reads;
    several resolvers may query the same (no longer mutated) configuration.
    """

    def __init__(self, configuration: "Configuration") -> None:
        self._configuration = configuration

    @property
    def configuration(self) -> "Configuration":
        return self._configuration

    def transformation_chain(
        self,
        from_frame: str,
        to_frame: str,
        overrides: Overrides | None = None,
    ) -> Chain:
        """Find a shortest chain of transforms between two frames.

        Both directions of every static and dynamic transform can be used;
        example transforms never are.

        Args:
            from_frame: The source frame.
            to_frame: The destination frame.
            overrides: Optional per-call edge changes. A key ``(a, b)`` (in any
                order) mapped to a producer replaces the transforms between
                ``a`` and ``b`` by a dynamic transform ``a => b`` using that
                producer; mapped to None, it forbids the pair. The configuration
                is not modified.

        Returns:
            The chain, with the fewest links.

        Raises:
            TransformationNotFound: If either frame is not declared or no chain
                connects them.

        """
        if overrides and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"looking for chain for {from_frame} => {to_frame}",
                data={"overrides": {str(k): repr(v) for k, v in overrides.items()}},
            )
        else:
            logger.debug(f"looking for chain for {from_frame} => {to_frame}")
        edges = self._edges(
            (*self._configuration.static_transforms, *self._configuration.dynamic_transforms),
            overrides or {},
        )
        return self._search(from_frame, to_frame, edges)

    def resolve_static_chain(self, from_frame: str, to_frame: str) -> Chain:
        """Find a shortest chain made only of static transforms.

        Raises:
            TransformationNotFound: If the frames are only connected through
                dynamic transforms, or not at all.

        """
        return self._search(from_frame, to_frame, self._configuration.static_transforms)

    def _edges(self, transforms: tuple[Transform, ...], overrides: Overrides) -> list[Transform]:
        overridden = {frozenset(pair): (pair, producer) for pair, producer in overrides.items()}
        edges = [t for t in transforms if t.frames not in overridden]
        for (from_frame, to_frame), producer in overridden.values():
            if producer is not None:
                edges.append(
                    DynamicTransform(from_frame=from_frame, to_frame=to_frame, producer=producer),
                )
        return edges

    def _search(self, from_frame: str, to_frame: str, edges: tuple[Transform, ...] | list[Transform]) -> Chain:
        configuration = self._configuration
        if not configuration.has_frame(from_frame) or not configuration.has_frame(to_frame):
            raise TransformationNotFound(from_frame, to_frame)
        if from_frame == to_frame:
            return Chain(from_frame, to_frame)

        # One edge per frame pair: the first transform wins, so static
        # transforms are preferred over dynamic ones
        graph = nx.Graph()
        graph.add_nodes_from((from_frame, to_frame))
        for transform in edges:
            if not graph.has_edge(transform.from_frame, transform.to_frame):
                graph.add_edge(transform.from_frame, transform.to_frame, transform=transform)

        try:
            path = nx.shortest_path(graph, from_frame, to_frame)
        except nx.NetworkXNoPath:
            raise TransformationNotFound(from_frame, to_frame) from None

        steps = []
        for frame, neighbour in zip(path, path[1:]):
            transform = graph.edges[frame, neighbour]["transform"]
            steps.append(ChainLink(transform, transform.from_frame != frame))
        chain = Chain(from_frame, to_frame, tuple(steps))
        logger.debug(f"found chain of {len(chain)} transforms for {from_frame} => {to_frame}")
        return chain


__all__ = ["Chain", "ChainLink", "ChainResolver", "Overrides"]
