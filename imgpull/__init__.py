"""imgpull - fetch container images from Distribution v2 registries."""

from imgpull.config import VERSION

__version__ = VERSION
