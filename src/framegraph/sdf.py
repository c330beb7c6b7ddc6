"""Read SDF (Simulation Description Format) XML into model descriptions.

Only the subset the importer needs is read: worlds, (nested) models with their
pose, static flag and canonical link, links with their pose, and joints with
type, parent, child, pose and axis (direction, limits, frame flag). Everything
else in the document is ignored.

``<include>`` elements are resolved. A ``model://name`` URI is looked up in
the model path, a directory per model holding a ``model.config`` (which names
the SDF file) or a ``model.sdf``. Other URIs are file paths, relative to the
including document. The include's ``<name>``, ``<pose>`` and ``<static>``
override those of the included model.
"""

import os
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from framegraph.description import Description
from framegraph.errors import InvalidDescription

MODEL_URI_SCHEME = "model://"

FILE_URI_SCHEME = "file://"

# Environment variables listing model directories, as used by Gazebo
MODEL_PATH_VARIABLES = ("SDF_PATH", "GAZEBO_MODEL_PATH")


def default_model_path() -> list[Path]:
    """Model directories listed in the SDF_PATH and GAZEBO_MODEL_PATH variables."""
    paths: list[Path] = []
    for variable in MODEL_PATH_VARIABLES:
        paths.extend(Path(p) for p in os.environ.get(variable, "").split(os.pathsep) if p)
    return paths


def load_sdf(path: str | Path, model_path: Iterable[str | Path] | None = None) -> Description:
    """Load an SDF file.

    Args:
        path: The SDF file.
        model_path: Directories searched for ``model://`` includes. Defaults
            to :func:`default_model_path`.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        xml.etree.ElementTree.ParseError: If the file is not well-formed XML.
        InvalidDescription: If the document is not an SDF document, or an
            include cannot be resolved.
        pydantic.ValidationError: If an element misses a required field.

    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"SDF file not found: {path}")
    reader = SDFReader(model_path)
    return reader.read_root(reader.parse_file(path), path.parent, {path.resolve()})


def parse_sdf(
    text: str,
    base_dir: str | Path | None = None,
    model_path: Iterable[str | Path] | None = None,
) -> Description:
    """Parse an SDF document given as a string.

    Relative includes are resolved against ``base_dir`` (the current
    directory by default).
    """
    reader = SDFReader(model_path)
    return reader.read_root(ET.fromstring(text), Path(base_dir or "."), set())


class SDFReader:
    """Converts SDF elements to description data, resolving includes."""

    def __init__(self, model_path: Iterable[str | Path] | None = None) -> None:
        if model_path is None:
            self.model_path = default_model_path()
        else:
            self.model_path = [Path(p) for p in model_path]

    def parse_file(self, path: Path) -> ET.Element:
        root = ET.parse(path).getroot()
        if root.tag != "sdf":
            raise InvalidDescription(f"Expected an <sdf> root element in {path}, got <{root.tag}>")
        return root

    def read_root(self, root: ET.Element, base_dir: Path, loading: set[Path]) -> Description:
        if root.tag != "sdf":
            raise InvalidDescription(f"Expected an <sdf> root element, got <{root.tag}>")
        return Description.model_validate(
            {
                "worlds": [self._world(w, base_dir, loading) for w in root.findall("world")],
                "models": self._models(root, base_dir, loading),
            },
        )

    # -- includes ----------------------------------------------------------------

    def resolve_uri(self, uri: str, base_dir: Path) -> Path:
        """The SDF file an include URI refers to.

        Raises:
            InvalidDescription: If no such file exists.

        """
        if uri.startswith(MODEL_URI_SCHEME):
            relative = uri[len(MODEL_URI_SCHEME):]
            candidates = [directory / relative for directory in self.model_path]
        else:
            if uri.startswith(FILE_URI_SCHEME):
                uri = uri[len(FILE_URI_SCHEME):]
            candidates = [base_dir / uri]

        for candidate in candidates:
            if candidate.is_file():
                return candidate
            if candidate.is_dir():
                sdf_file = self._model_file(candidate)
                if sdf_file is not None:
                    return sdf_file
        searched = ", ".join(str(c) for c in candidates) or "an empty model path"
        raise InvalidDescription(f"Cannot resolve included model '{uri}' (searched {searched})")

    @staticmethod
    def _model_file(directory: Path) -> Path | None:
        config = directory / "model.config"
        if config.is_file():
            name = _text(ET.parse(config).getroot(), "sdf")
            if name:
                return directory / name
        default = directory / "model.sdf"
        return default if default.is_file() else None

    def _include(self, element: ET.Element, base_dir: Path, loading: set[Path]) -> dict[str, Any]:
        uri = _text(element, "uri")
        if not uri:
            raise InvalidDescription("<include> element without an <uri>")
        path = self.resolve_uri(uri, base_dir)
        key = path.resolve()
        if key in loading:
            raise InvalidDescription(f"Recursive include of {path}")

        root = self.parse_file(path)
        model = root.find("model")
        if model is None:
            raise InvalidDescription(f"Included file {path} has no <model>")
        data = self._model(model, path.parent, loading | {key})

        name = _text(element, "name")
        if name:
            data["name"] = name
        static = _text(element, "static")
        if static is not None:
            data["static"] = _parse_bool(static)
        return _with_pose(data, element)

    # -- elements ------------------------------------------------------------------

    def _models(self, element: ET.Element, base_dir: Path, loading: set[Path]) -> list[dict[str, Any]]:
        models = []
        for child in element:
            if child.tag == "model":
                models.append(self._model(child, base_dir, loading))
            elif child.tag == "include":
                models.append(self._include(child, base_dir, loading))
        return models

    def _world(self, element: ET.Element, base_dir: Path, loading: set[Path]) -> dict[str, Any]:
        return {
            "name": _name(element),
            "models": self._models(element, base_dir, loading),
        }

    def _model(self, element: ET.Element, base_dir: Path, loading: set[Path]) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": _name(element),
            "static": _parse_bool(_text(element, "static")),
            "links": [_with_pose({"name": _name(link)}, link) for link in element.findall("link")],
            "joints": [_parse_joint(j) for j in element.findall("joint")],
            "models": self._models(element, base_dir, loading),
        }
        if element.get("canonical_link"):
            data["canonical_link"] = element.get("canonical_link")
        return _with_pose(data, element)


def _text(element: ET.Element, tag: str) -> str | None:
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _name(element: ET.Element) -> str:
    name = element.get("name")
    if not name:
        raise InvalidDescription(f"<{element.tag}> element without a name")
    return name


def _parse_pose(element: ET.Element) -> list[float] | None:
    text = _text(element, "pose")
    if text is None:
        return None
    try:
        values = [float(v) for v in text.split()]
    except ValueError as e:
        raise InvalidDescription(f"Invalid pose '{text}' in <{element.tag}>: {e}") from e
    if len(values) != 6:
        raise InvalidDescription(f"Expected 6 pose values in <{element.tag}>, got '{text}'")
    return values


def _parse_bool(text: str | None) -> bool:
    return text is not None and text.lower() in {"1", "true"}


def _with_pose(data: dict[str, Any], element: ET.Element) -> dict[str, Any]:
    pose = _parse_pose(element)
    if pose is not None:
        data["pose"] = pose
    return data


def _parse_joint(element: ET.Element) -> dict[str, Any]:
    data: dict[str, Any] = {"name": _name(element), "type": element.get("type")}
    # Missing parent/child are left out so that validation reports them
    for tag in ("parent", "child"):
        value = _text(element, tag)
        if value is not None:
            data[tag] = value

    axis = element.find("axis")
    if axis is not None:
        axis_data: dict[str, Any] = {
            "use_parent_model_frame": _parse_bool(_text(axis, "use_parent_model_frame")),
        }
        xyz = _text(axis, "xyz")
        if xyz is not None:
            axis_data["xyz"] = xyz.split()
        limit = axis.find("limit")
        if limit is not None:
            axis_data["limit"] = {
                tag: value
                for tag in ("lower", "upper")
                if (value := _text(limit, tag)) is not None
            }
        data["axis"] = axis_data
    return _with_pose(data, element)
