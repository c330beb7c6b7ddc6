"""Exception types raised by framegraph."""


class FrameGraphError(Exception):
    """Base exception for all framegraph errors."""


class TransformationNotFound(FrameGraphError, KeyError):
    """No transformation (or chain of transformations) connects two frames."""

    def __init__(self, from_frame: str, to_frame: str) -> None:
        super().__init__(from_frame, to_frame)
        self.from_frame = from_frame
        self.to_frame = to_frame

    def __str__(self) -> str:
        return f"no transformation from '{self.from_frame}' to '{self.to_frame}'"


class MissingFrame(FrameGraphError, KeyError):
    """A frame that was expected to be declared is not."""

    def __init__(self, frame: str) -> None:
        super().__init__(frame)
        self.frame = frame

    def __str__(self) -> str:
        return f"frame '{self.frame}' is not declared"


class DuplicateTransform(FrameGraphError, ValueError):
    """A second static or dynamic transform was registered for a frame pair."""

    def __init__(self, kind: str, from_frame: str, to_frame: str) -> None:
        super().__init__(kind, from_frame, to_frame)
        self.kind = kind
        self.from_frame = from_frame
        self.to_frame = to_frame

    def __str__(self) -> str:
        return (
            f"a {self.kind} transformation between '{self.from_frame}' and "
            f"'{self.to_frame}' is already registered"
        )


class InvalidDescription(FrameGraphError, ValueError):
    """A model description is structurally valid but semantically wrong."""


__all__ = [
    "DuplicateTransform",
    "FrameGraphError",
    "InvalidDescription",
    "MissingFrame",
    "TransformationNotFound",
]
