# CLI argument parsing for imgpull

import argparse
import sys

from imgpull.modules.keepers.storage import SINK_FORMATS


def _add_credentials(p):
    p.add_argument(
        "--username", "-u",
        dest="username",
        default=None,
        help="Username of the remote image registry (default: $IMGPULL_USERNAME)",
    )
    p.add_argument(
        "--password", "-p",
        dest="password",
        default=None,
        help="Password of the remote image registry (default: $IMGPULL_PASSWORD)",
    )


def build_parser():
    p = argparse.ArgumentParser(
        prog="imgpull",
        description="Download OCI/Docker images that docker and podman can load.",
    )
    p.add_argument(
        "--verbosity", "-v",
        dest="verbosity",
        type=int,
        default=0,
        help="Log verbosity: 0 warnings, 1 progress, 2 auth and manifest details",
    )
    p.add_argument(
        "--log-file", "-l",
        dest="log_file",
        help="Path to save a complete log of output",
    )
    sub = p.add_subparsers(dest="command")

    fetch = sub.add_parser(
        "fetch",
        help="Fetch an image (manifest, config and layers) from a remote registry",
    )
    fetch.add_argument("image_ref", help="Image reference, e.g. nginx or docker://quay.io/org/app:1.2")
    _add_credentials(fetch)
    fetch.add_argument(
        "--output", "-o",
        dest="output",
        default=None,
        help="Output tar file or directory (default: <repo>_<tag>.tar in the current directory)",
    )
    fetch.add_argument(
        "--format", "-f",
        dest="format",
        choices=SINK_FORMATS,
        default="tar",
        help="tar: single loadable archive; dir: loose files (default: tar)",
    )

    manifest = sub.add_parser("manifest", help="Print the raw image manifest")
    manifest.add_argument("image_ref", help="Image reference")
    _add_credentials(manifest)

    sub.add_parser("version", help="Print the version number")
    return p


def parse_args(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    # Show help if no command selected
    if not args.command:
        p.print_help()
        sys.exit(0)
    return args
