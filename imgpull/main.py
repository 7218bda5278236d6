#  imgpull main CLI: fetch / manifest / version
import asyncio
import os
import sys

import httpx

from imgpull.config import VERSION
from imgpull.modules.cli import parse_args
from imgpull.modules.errors import ImagePullError
from imgpull.modules.formatters import ImageReference, human_readable_size, parse_image_ref, short_digest
from imgpull.modules.keepers import RegistryClient, fetch_image, open_sink
from imgpull.modules.logs import Tee, configure_logging


def default_output_path(ref: ImageReference, fmt: str) -> str:
    """nginx:latest -> library_nginx_latest.tar (or a directory of that stem)."""
    suffix = ref.tag or short_digest(ref.digest).replace(":", "_")
    stem = f"{ref.name.replace('/', '_')}_{suffix}"
    return stem if fmt == "dir" else f"{stem}.tar"


async def run_fetch(args) -> None:
    ref = parse_image_ref(args.image_ref)
    output = args.output or default_output_path(ref, args.format)
    print(f"[*] Fetching {ref} -> {output}")

    def progress(msg, current, total):
        if current < total:
            print(f"  [{current + 1}/{total}] {msg}")

    async with RegistryClient(args.username, args.password) as client:
        with open_sink(output, args.format) as sink:
            entry = await fetch_image(client, ref, sink, progress_callback=progress)
    if args.format == "dir":
        written = sum(
            os.path.getsize(os.path.join(output, name)) for name in os.listdir(output)
        )
    else:
        written = os.path.getsize(output)

    print(f"[+] Saved {ref.repo_string()} ({len(entry.layers)} layers, "
          f"{human_readable_size(written)}) to {output}")


async def run_manifest(args) -> None:
    ref = parse_image_ref(args.image_ref)
    async with RegistryClient(args.username, args.password) as client:
        manifest = await client.fetch_manifest(ref)
    print(f"Image Manifest: {manifest.decode('utf-8', errors='replace')}")


def main(argv=None) -> int:
    args = parse_args(argv)

    # set up logging/tee if requested
    log_f = None
    if args.log_file:
        log_f = open(args.log_file, "w", encoding="utf-8")
        sys.stdout = Tee(sys.stdout, log_f)
        sys.stderr = Tee(sys.stderr, log_f)
    configure_logging(args.verbosity)

    try:
        if args.command == "version":
            print(f"imgpull version: {VERSION}")
        elif args.command == "fetch":
            asyncio.run(run_fetch(args))
        elif args.command == "manifest":
            asyncio.run(run_manifest(args))
        return 0
    except ImagePullError as e:
        print(f"[!] Error: {e}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"[!] Error: request failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n[!] Interrupted.", file=sys.stderr)
        return 130
    finally:
        if log_f is not None:
            sys.stdout = sys.stdout.files[0]
            sys.stderr = sys.stderr.files[0]
            log_f.close()


if __name__ == "__main__":
    sys.exit(main())
