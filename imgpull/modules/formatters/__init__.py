from .formatters import human_readable_size, short_digest
from .reference import ImageReference, parse_image_ref

__all__ = ["ImageReference", "parse_image_ref", "human_readable_size", "short_digest"]
