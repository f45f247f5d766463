class TagPipelineError(Exception):
    """Base class for errors raised by the tag pipeline."""


class ConfigError(TagPipelineError):
    """Marker configuration is malformed."""


class DegenerateGeometryError(TagPipelineError):
    """Corner geometry of a detection cannot be resolved to a pose."""


class FrameDecodeError(TagPipelineError):
    """Incoming image could not be converted for detection."""
