#!/usr/bin/env python3
"""
Command-line front end for the wedding gallery.

  wedding-gallery upload IMG_0001.jpg clip.mp4      # guest upload
  wedding-gallery list                              # gallery, newest first
  wedding-gallery delete <id> --token ...           # admin delete (asks first)

GALLERY_API_URL and GALLERY_ADMIN_TOKEN supply defaults for --api and --token.
"""
import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

import httpx

from gallery_client.api import GalleryApiError, GalleryClient, PendingFile
from gallery_client.session import UploadSession

DEFAULT_API_URL = "http://localhost:8000"


class ConsoleNotifier:
    """Prints what the upload page would show as toasts and progress bars."""

    def __init__(self, out=None):
        self.out = out or sys.stderr

    def _print(self, msg: str) -> None:
        print(msg, file=self.out)

    def rejected(self, file, reason):
        self._print(f"  skipped {file.name}: {reason}")

    def progress(self, file, percent):
        self._print(f"  {file.name}: {percent}%")

    def file_failed(self, file, reason):
        self._print(f"  could not upload {file.name}: {reason}")

    def nothing_uploaded(self):
        self._print("No files were uploaded.")

    def celebrate(self, uploaded):
        self._print(f"Thank you! {uploaded} file(s) were added to the gallery.")


async def cmd_upload(args) -> int:
    files = []
    for raw in args.files:
        try:
            files.append(PendingFile.from_path(raw))
        except OSError as e:
            print(f"  cannot read {raw}: {e}", file=sys.stderr)
    async with GalleryClient(args.api) as client:
        session = UploadSession(client, notifier=ConsoleNotifier())
        session.select(files)
        if not session.pending:
            print("Nothing to upload: pick image or video files.", file=sys.stderr)
            return 1
        result = await session.submit()
    for outcome in result.succeeded:
        print(outcome.record["url"])
    return 0 if result.succeeded else 1


def summarize(photos: list[dict]) -> str:
    videos = sum(1 for p in photos if p.get("type") == "video")
    return f"{len(photos) - videos} image(s), {videos} video(s)"


async def cmd_list(args) -> int:
    async with GalleryClient(args.api) as client:
        photos = await client.list_photos()
    for p in photos:
        when = datetime.fromtimestamp(p["created_at"] / 1000, tz=timezone.utc).isoformat(timespec="seconds")
        print(f"{p['id']}  {p['type']:<5}  {when}  {p['url']}")
    print(summarize(photos), file=sys.stderr)
    return 0


async def cmd_delete(args) -> int:
    if not args.token:
        print("An admin token is required (--token or GALLERY_ADMIN_TOKEN).", file=sys.stderr)
        return 2
    if not args.yes:
        answer = input(f"Delete {args.id} permanently? This cannot be undone. [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled.", file=sys.stderr)
            return 1
    async with GalleryClient(args.api, admin_token=args.token) as client:
        await client.delete_photo(args.id)
    print(f"Deleted {args.id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wedding-gallery", description=__doc__.split("\n\n")[0].strip())
    parser.add_argument("--api", default=os.environ.get("GALLERY_API_URL", DEFAULT_API_URL), help="API base URL")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    up = sub.add_parser("upload", help="Upload photos and videos")
    up.add_argument("files", nargs="+")
    up.set_defaults(func=cmd_upload)

    ls = sub.add_parser("list", help="List the gallery, newest first")
    ls.set_defaults(func=cmd_list)

    rm = sub.add_parser("delete", help="Delete one item (admin)")
    rm.add_argument("id")
    rm.add_argument("--token", default=os.environ.get("GALLERY_ADMIN_TOKEN", ""))
    rm.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    rm.set_defaults(func=cmd_delete)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        return asyncio.run(args.func(args))
    except GalleryApiError as e:
        print(f"error: {e.message} (HTTP {e.status_code})", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"error: could not reach {args.api}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
