# config.py
# Registry defaults and credentials, read once from the environment.

import os

VERSION = "0.3.0"

# Docker Hub serves its API from a different host than the one users type
DEFAULT_REGISTRY = os.environ.get("IMGPULL_DEFAULT_REGISTRY", "registry-1.docker.io")
DOCKERHUB_ALIAS = "docker.io"
DEFAULT_SCHEME = "docker"
DEFAULT_TAG = "latest"
DEFAULT_NAMESPACE = "library"

# Optional credentials for the Basic-auth token exchange
REGISTRY_USERNAME = os.environ.get("IMGPULL_USERNAME") or None
REGISTRY_PASSWORD = os.environ.get("IMGPULL_PASSWORD") or None

# None disables httpx timeouts; callers bound runs with asyncio.timeout()
_timeout = os.environ.get("IMGPULL_HTTP_TIMEOUT")
HTTP_TIMEOUT = float(_timeout) if _timeout else None
