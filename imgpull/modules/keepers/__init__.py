from .downloaders import RegistryClient
from .fetcher import fetch_image, parse_manifest
from .manifests import Descriptor, ImageManifest, SavedManifestEntry
from .storage import DirectorySink, TarArchiveSink, open_sink
