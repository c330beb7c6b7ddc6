"""Populate a configuration from a world/model/link/joint description.

Frames are named hierarchically: a top-level model is named after itself,
everything inside it is prefixed with the model name and ``::``. Worlds are
global frames. For every model:

- each link without an incoming joint is attached statically to the model
  frame using its pose in the model;
- a joint that cannot move becomes a static transform child => parent;
- a joint that can move gets two frames, ``<joint>_pre`` (attached to the
  parent link) and ``<joint>_post`` (attached to the child link). The motion
  post => pre is a dynamic transform if the producer resolver provides a
  producer, and is always illustrated by an example transform at the middle of
  the joint range;
- the model frame is attached to its parent (world or enclosing model),
  statically for static models and with an example transform otherwise,
  unless the links and joints already connect them statically.

The "world" pseudo-link may be used as a joint endpoint. It stands for the
enclosing world frame, and the joint then only connects that frame and the
other link.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from framegraph.configuration import Configuration
from framegraph.description import Description, Joint, Model, World, load_description
from framegraph.errors import InvalidDescription, TransformationNotFound
from framegraph.geometry import Pose
from framegraph.logging import get_logger
from framegraph.sdf import load_sdf

logger = get_logger(__name__)

SEPARATOR = "::"

SDF_SUFFIXES = {".sdf", ".world", ".xml"}


def scoped_name(prefix: str, name: str) -> str:
    """Join a name to its namespace, e.g. ``scoped_name("m", "l") == "m::l"``."""
    if not prefix:
        return name
    return f"{prefix}{SEPARATOR}{name}"


class ImportOptions(BaseModel):
    """Options of a model import."""

    exclude_models: list[str] = Field(
        default_factory=list,
        description="Names (or scoped names) of models to skip, with their content",
    )
    world_link: str = Field(
        default="world",
        min_length=1,
        description="Name of the pseudo-link standing for the world in joints; also "
        "the frame used for it when a model is imported outside of a world",
    )
    model_path: list[Path] | None = Field(
        default=None,
        description="Directories searched for model:// includes of SDF documents; "
        "SDF_PATH and GAZEBO_MODEL_PATH when unset",
    )


@dataclass(frozen=True)
class JointDescriptor:
    """A movable joint as imported, handed to the producer resolver.

    ``full_name`` is scoped by the enclosing world, if any, and the model
    (``w::m::j``), while frame names are not world-scoped (``m::j_pre``).
    """

    joint: Joint
    full_name: str
    model_frame: str
    parent_frame: str
    child_frame: str
    pre_frame: str
    post_frame: str

    @property
    def name(self) -> str:
        return self.joint.name


# Returns the producer of a joint's motion, or None if there is none
ProducerResolver = Callable[[JointDescriptor], Any | None]


class ModelImporter:
    """Adds the frames and transforms of model descriptions to a configuration."""

    def __init__(
        self,
        configuration: Configuration,
        producer_resolver: ProducerResolver | None = None,
        options: ImportOptions | dict[str, Any] | None = None,
    ) -> None:
        """Initialize an importer.

        Args:
            configuration: The configuration to populate.
            producer_resolver: Called once per movable joint; a non-None return
                value becomes the producer of a dynamic transform for the joint.
            options: Import options, as an ImportOptions or a plain dict.

        """
        self.configuration = configuration
        self.producer_resolver = producer_resolver
        if isinstance(options, ImportOptions):
            self.options = options
        else:
            self.options = ImportOptions.model_validate(options or {})
        # model frame -> frame of its canonical link
        self.canonical_links: dict[str, str] = {}

    # -- entry points --------------------------------------------------------

    def load(self, path: str | Path) -> Description:
        """Load a description file (SDF, YAML or JSON) and import it.

        The format is chosen by suffix: .sdf, .world and .xml are read as SDF,
        anything else as YAML/JSON.

        Returns:
            The loaded description.

        """
        path = Path(path)
        if path.suffix.lower() in SDF_SUFFIXES:
            description = load_sdf(path, self.options.model_path)
        else:
            description = load_description(path)
        self.import_description(description)
        return description

    def import_description(self, description: Description) -> None:
        """Import every world and top-level model of a document."""
        frame_count = len(self.configuration)
        for world in description.worlds:
            self.import_world(world)
        for model in self._included(description.models, ""):
            self.import_model(model)
        logger.info(
            "imported model description",
            data={
                "worlds": [w.name for w in description.worlds],
                "models": [m.name for m in description.models],
                "new_frames": len(self.configuration) - frame_count,
            },
        )

    def import_world(self, world: World) -> None:
        """Declare the world frame and import the models it contains."""
        self.configuration.declare_frames(world.name)
        logger.debug(f"importing world {world.name}")
        for model in self._included(world.models, ""):
            self.import_model(model, parent_frame=world.name, world_frame=world.name)

    def import_model(
        self,
        model: Model,
        prefix: str = "",
        parent_frame: str | None = None,
        *,
        world_frame: str | None = None,
        parent_in_world: Pose | None = None,
    ) -> str:
        """Import a model and, recursively, its nested models.

        Args:
            model: The model to import.
            prefix: Namespace of the model ("" for top-level models).
            parent_frame: Frame the model pose is relative to, if any.
            world_frame: The enclosing world frame, which the "world" pseudo-link
                maps to and which scopes joint names. Outside of a world the
                pseudo-link maps to the world_link option.
            parent_in_world: Pose of ``parent_frame`` in the world frame.

        Returns:
            The model frame name.

        """
        world_name = world_frame or ""
        world_frame = world_frame or self.options.world_link
        parent_in_world = parent_in_world or Pose.identity()
        model_frame = scoped_name(prefix, model.name)
        model_in_world = parent_in_world * model.relative_pose
        self.configuration.declare_frames(model_frame)
        logger.debug(f"importing model {model_frame}", data={"parent": parent_frame, "static": model.static})

        self._import_links_and_joints(model, model_frame, world_name, world_frame, model_in_world)
        for submodel in self._included(model.models, model_frame):
            self.import_model(
                submodel,
                model_frame,
                model_frame,
                world_frame=world_name or None,
                parent_in_world=model_in_world,
            )

        if parent_frame is not None:
            self._attach_model(model, model_frame, parent_frame, world_frame)
        return model_frame

    # -- internals -------------------------------------------------------------

    def _included(self, models: Iterable[Model], prefix: str) -> list[Model]:
        excluded = set(self.options.exclude_models)
        return [
            m for m in models if m.name not in excluded and scoped_name(prefix, m.name) not in excluded
        ]

    def _attach_model(self, model: Model, model_frame: str, parent_frame: str, world_frame: str) -> None:
        if parent_frame == world_frame and any(
            self.options.world_link in (joint.parent, joint.child) for joint in model.joints
        ):
            # The world joints already place the model links in the world
            return
        try:
            self.configuration.resolve_static_chain(model_frame, parent_frame)
        except TransformationNotFound:
            pass
        else:
            logger.debug(f"{model_frame} is already statically connected to {parent_frame}")
            return

        if model.static:
            self.configuration.static_transform(
                model.relative_pose,
                from_frame=model_frame,
                to_frame=parent_frame,
            )
        else:
            # The actual pose of a free model is only known at runtime
            self.configuration.example_transform(
                model.relative_pose,
                from_frame=model_frame,
                to_frame=parent_frame,
            )

    def _link_poses(self, model: Model, model_frame: str) -> dict[str, Pose]:
        """Poses in ``model`` of all its links, nested models included, keyed by scoped name."""
        poses: dict[str, Pose] = {}
        stack: list[tuple[Model, str, Pose]] = [(model, "", Pose.identity())]
        while stack:
            current, prefix, current_in_model = stack.pop()
            for link in current.links:
                poses[scoped_name(prefix, link.name)] = current_in_model * link.relative_pose
            current_frame = scoped_name(model_frame, prefix) if prefix else model_frame
            for submodel in reversed(self._included(current.models, current_frame)):
                stack.append(
                    (
                        submodel,
                        scoped_name(prefix, submodel.name),
                        current_in_model * submodel.relative_pose,
                    ),
                )
        return poses

    def _import_links_and_joints(
        self,
        model: Model,
        model_frame: str,
        world_name: str,
        world_frame: str,
        model_in_world: Pose,
    ) -> None:
        link_poses = self._link_poses(model, model_frame)
        self.configuration.declare_frames(*(scoped_name(model_frame, name) for name in link_poses))

        root_link = model.root_link()
        if root_link is not None:
            self.canonical_links[model_frame] = scoped_name(model_frame, root_link.name)

        def resolve_link(joint: Joint, name: str) -> tuple[str, Pose]:
            if name == self.options.world_link:
                return world_frame, model_in_world.inverse()
            try:
                return scoped_name(model_frame, name), link_poses[name]
            except KeyError:
                raise InvalidDescription(
                    f"joint '{joint.name}' of model '{model_frame}' refers to unknown link '{name}'",
                ) from None

        children: set[str] = set()
        for joint in model.joints:
            children.add(joint.child)
            parent_frame, parent_in_model = resolve_link(joint, joint.parent)
            child_frame, child_in_model = resolve_link(joint, joint.child)
            self._import_joint(
                joint,
                model_frame,
                world_name,
                (parent_frame, parent_in_model),
                (child_frame, child_in_model),
            )

        for link in model.links:
            if link.name in children:
                continue
            self.configuration.static_transform(
                link.relative_pose,
                from_frame=scoped_name(model_frame, link.name),
                to_frame=model_frame,
            )

    def _import_joint(
        self,
        joint: Joint,
        model_frame: str,
        world_name: str,
        parent: tuple[str, Pose],
        child: tuple[str, Pose],
    ) -> None:
        parent_frame, parent_in_model = parent
        child_frame, child_in_model = child
        joint_to_child = joint.relative_pose
        child_to_parent = parent_in_model.inverse() * child_in_model

        if joint.is_rigid:
            logger.debug(f"rigid joint {joint.name}: {child_frame} => {parent_frame}")
            self.configuration.static_transform(
                child_to_parent,
                from_frame=child_frame,
                to_frame=parent_frame,
            )
            return

        joint_to_parent = child_to_parent * joint_to_child
        axis = joint.axis.xyz
        if joint.axis.use_parent_model_frame:
            joint_in_model = child_in_model * joint_to_child
            axis = tuple(joint_in_model.rotation.inv().apply(axis))
        post_to_pre = joint.transform_for(joint.midpoint, axis)

        descriptor = JointDescriptor(
            joint=joint,
            full_name=scoped_name(world_name, scoped_name(model_frame, joint.name)),
            model_frame=model_frame,
            parent_frame=parent_frame,
            child_frame=child_frame,
            pre_frame=scoped_name(model_frame, f"{joint.name}_pre"),
            post_frame=scoped_name(model_frame, f"{joint.name}_post"),
        )
        logger.debug(
            f"movable joint {descriptor.full_name}",
            data={"type": joint.type.value, "lower": joint.lower, "upper": joint.upper},
        )
        post_frame, pre_frame = descriptor.post_frame, descriptor.pre_frame
        self.configuration.static_transform(joint_to_child, from_frame=post_frame, to_frame=child_frame)
        self.configuration.static_transform(joint_to_parent, from_frame=pre_frame, to_frame=parent_frame)
        self.configuration.register_joint(post_frame, pre_frame, descriptor)
        if self.producer_resolver is not None:
            producer = self.producer_resolver(descriptor)
            if producer is not None:
                self.configuration.dynamic_transform(producer, from_frame=post_frame, to_frame=pre_frame)
        self.configuration.example_transform(post_to_pre, from_frame=post_frame, to_frame=pre_frame)


def load_into(
    configuration: Configuration,
    path: str | Path,
    producer_resolver: ProducerResolver | None = None,
    options: ImportOptions | dict[str, Any] | None = None,
) -> Description:
    """Load a description file and import it into ``configuration``."""
    return ModelImporter(configuration, producer_resolver, options).load(path)
