"""framegraph: Coordinate frame graphs, transformation chains and model importers."""

from framegraph.chain import Chain, ChainLink, ChainResolver
from framegraph.configuration import Configuration
from framegraph.errors import (
    DuplicateTransform,
    FrameGraphError,
    InvalidDescription,
    MissingFrame,
    TransformationNotFound,
)
from framegraph.geometry import Pose
from framegraph.importer import ImportOptions, JointDescriptor, ModelImporter, load_into
from framegraph.transforms import DynamicTransform, ExampleTransform, StaticTransform, TransformKind

__version__ = "0.1.0"

__all__ = [
    "Chain",
    "ChainLink",
    "ChainResolver",
    "Configuration",
    "DuplicateTransform",
    "DynamicTransform",
    "ExampleTransform",
    "FrameGraphError",
    "ImportOptions",
    "InvalidDescription",
    "JointDescriptor",
    "MissingFrame",
    "ModelImporter",
    "Pose",
    "StaticTransform",
    "TransformKind",
    "TransformationNotFound",
    "load_into",
]
