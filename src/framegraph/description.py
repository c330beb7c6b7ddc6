"""Hierarchical world/model/link/joint descriptions.

Pydantic models for the documents the importer consumes, with YAML/JSON I/O.
Poses are written ``[x, y, z, roll, pitch, yaw]`` (meters, radians, extrinsic
XYZ Euler angles) and are relative to the enclosing element: links and joints
to their model, nested models to their parent model, top-level models to the
world. A joint's pose is relative to its child link.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from framegraph.geometry import Pose

PoseValues = tuple[float, float, float, float, float, float]

ZERO_POSE: PoseValues = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


class JointType(str, Enum):
    """Kinematic joint types."""

    FIXED = "fixed"
    REVOLUTE = "revolute"
    CONTINUOUS = "continuous"
    PRISMATIC = "prismatic"
    SCREW = "screw"
    BALL = "ball"
    UNIVERSAL = "universal"
    REVOLUTE2 = "revolute2"
    GEARBOX = "gearbox"

    @property
    def has_single_axis(self) -> bool:
        """Whether the motion is one position along one axis."""
        return self in _SINGLE_AXIS_TYPES


_SINGLE_AXIS_TYPES = frozenset(
    {JointType.REVOLUTE, JointType.CONTINUOUS, JointType.PRISMATIC, JointType.SCREW},
)


class JointLimit(BaseModel):
    """Position limits of a joint along its axis (radians or meters)."""

    lower: float = Field(default=0.0, description="Lower position limit")
    upper: float = Field(default=0.0, description="Upper position limit")

    @model_validator(mode="after")
    def validate_range(self) -> JointLimit:
        """Reject inverted ranges."""
        if self.lower > self.upper:
            raise ValueError(f"lower limit {self.lower} is above upper limit {self.upper}")
        return self


class JointAxis(BaseModel):
    """Motion axis of a joint."""

    xyz: tuple[float, float, float] = Field(default=(0.0, 0.0, 1.0), description="Axis direction")
    limit: JointLimit = Field(default_factory=JointLimit, description="Position limits")
    use_parent_model_frame: bool = Field(
        default=False,
        description="Axis is expressed in the model frame instead of the joint frame",
    )

    @field_validator("xyz")
    @classmethod
    def validate_xyz(cls, v: tuple[float, float, float]) -> tuple[float, float, float]:
        """The axis must have a direction."""
        if not any(v):
            raise ValueError("joint axis must not be the zero vector")
        return v


class Link(BaseModel):
    """A rigid body of a model."""

    name: str = Field(min_length=1)
    pose: PoseValues = Field(default=ZERO_POSE, description="Pose relative to the model")

    @property
    def relative_pose(self) -> Pose:
        return Pose.from_xyz_rpy(self.pose)


class Joint(BaseModel):
    """A joint between two links of a model (or the 'world' pseudo-link)."""

    name: str = Field(min_length=1)
    type: JointType
    parent: str = Field(min_length=1, description="Parent link name")
    child: str = Field(min_length=1, description="Child link name")
    pose: PoseValues = Field(default=ZERO_POSE, description="Pose relative to the child link")
    axis: JointAxis = Field(default_factory=JointAxis)

    @model_validator(mode="after")
    def validate_links(self) -> Joint:
        """A joint cannot connect a link to itself."""
        if self.parent == self.child:
            raise ValueError(f"joint '{self.name}' has '{self.parent}' as both parent and child")
        return self

    @property
    def relative_pose(self) -> Pose:
        return Pose.from_xyz_rpy(self.pose)

    @property
    def lower(self) -> float:
        return self.axis.limit.lower

    @property
    def upper(self) -> float:
        return self.axis.limit.upper

    @property
    def is_rigid(self) -> bool:
        """Whether the joint cannot move.

        Fixed joints, joints without a single motion axis (ball, universal,
        revolute2, gearbox) and zero-width ranges are rigid.
        """
        if not self.type.has_single_axis:
            return True
        # Continuous joints declare no limits (0..0) but always move
        if self.type is JointType.CONTINUOUS:
            return False
        return self.lower == self.upper

    @property
    def midpoint(self) -> float:
        """The middle of the joint range (0 for continuous joints)."""
        if self.type is JointType.CONTINUOUS:
            return 0.0
        return (self.lower + self.upper) / 2

    def transform_for(self, position: float, axis: tuple[float, float, float] | None = None) -> Pose:
        """The motion of the joint at ``position`` along ``axis`` (default: declared axis).

        Raises:
            ValueError: For joints without a single motion axis.

        """
        axis = self.axis.xyz if axis is None else axis
        match self.type:
            case JointType.REVOLUTE | JointType.CONTINUOUS | JointType.SCREW:
                return Pose.from_axis_angle(axis, position)
            case JointType.PRISMATIC:
                return Pose.from_axis_offset(axis, position)
            case _:
                raise ValueError(f"{self.type.value} joint '{self.name}' has no single-axis motion")


class Model(BaseModel):
    """A model: links, joints and nested models sharing a namespace."""

    name: str = Field(min_length=1)
    pose: PoseValues = Field(default=ZERO_POSE, description="Pose relative to the parent")
    static: bool = Field(default=False, description="The model never moves")
    canonical_link: str | None = Field(default=None, description="Link representing the model")
    links: list[Link] = Field(default_factory=list)
    joints: list[Joint] = Field(default_factory=list)
    models: list[Model] = Field(default_factory=list, description="Nested models")

    @model_validator(mode="after")
    def validate_names(self) -> Model:
        """Names are unique per element kind, the canonical link must exist."""
        for kind, elements in (("link", self.links), ("joint", self.joints), ("model", self.models)):
            names = [e.name for e in elements]
            duplicates = sorted({n for n in names if names.count(n) > 1})
            if duplicates:
                raise ValueError(f"model '{self.name}' has duplicate {kind} names: {duplicates}")
        if self.canonical_link is not None and self.canonical_link not in {
            link.name for link in self.links
        }:
            raise ValueError(
                f"canonical link '{self.canonical_link}' is not a link of model '{self.name}'",
            )
        return self

    @property
    def relative_pose(self) -> Pose:
        return Pose.from_xyz_rpy(self.pose)

    def root_link(self) -> Link | None:
        """The canonical link: the declared one, or the first link."""
        for link in self.links:
            if self.canonical_link is None or link.name == self.canonical_link:
                return link
        return None


class World(BaseModel):
    """A world: the global frame and the models placed in it."""

    name: str = Field(min_length=1)
    models: list[Model] = Field(default_factory=list)


class Description(BaseModel):
    """A complete document: worlds and/or standalone models."""

    worlds: list[World] = Field(default_factory=list)
    models: list[Model] = Field(default_factory=list)


def load_description(path: str | Path) -> Description:
    """Load a description from a YAML or JSON file.

    Args:
        path: Path to the description file.

    Returns:
        The validated description.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        pydantic.ValidationError: If the document does not match the schema.

    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Description file not found: {path}")

    with path.open(encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    return Description.model_validate(data or {})


def save_description(description: Description, path: str | Path) -> None:
    """Save a description to a YAML or JSON file (chosen by suffix)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = description.model_dump(mode="json", exclude_defaults=True)
    with path.open("w", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
