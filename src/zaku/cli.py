"""CLI for the zaku space store.

Commands:
    zaku spaces                 List known spaces (active one marked)
    zaku create-space           Create a space and make it active
    zaku open                   Make an existing space directory active
    zaku forget                 Forget a space, keeping its directory
    zaku tree                   Print the active space's tree
    zaku new-collection         Create (nested) collections
    zaku new-request            Create a request document
    zaku rename-collection      Change a collection's display name
    zaku move                   Move a collection or request
    zaku commit                 Write a request draft to its document
    zaku send                   Send a request from the active space
    zaku cookies                List or clear the active space's cookies
    zaku theme                  Set the default theme for new spaces
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from zaku.config import load_settings
from zaku.errors import NotFoundError, ZakuError
from zaku.logging_utils import setup_logging
from zaku.models.collection import Collection, CreateCollectionDto, MoveTreeItemDto
from zaku.models.request import CreateRequestDto
from zaku.models.space import CreateSpaceDto, Theme
from zaku.space import SpaceService


def _service(args: argparse.Namespace) -> SpaceService:
    return SpaceService(args.data_dir or load_settings().data_dir)


def _active_space(service: SpaceService):
    ref = service.state_store.get_spaceref()
    if ref is None:
        raise NotFoundError("No active space selected")
    return service.parse_space(ref.path)


def _print_collection(col: Collection, depth: int = 0) -> None:
    indent = "  " * depth
    print(f"{indent}{col.meta.display_name or col.meta.fsname}/")
    for child in col.collections:
        _print_collection(child, depth + 1)
    for req in col.requests:
        marker = " *" if req.meta.has_unsaved_changes else ""
        print(f"{indent}  {req.config.method} {req.meta.display_name} ({req.filename}){marker}")


def _cmd_spaces(args: argparse.Namespace) -> None:
    """List known spaces."""
    service = _service(args)
    active = service.state_store.get_spaceref()
    refs = service.state_store.get_spacerefs()
    if not refs:
        print("No spaces yet")
        return
    for ref in refs:
        mark = "*" if active is not None and active.path == ref.path else " "
        print(f"{mark} {ref.name}\t{ref.path}")


def _cmd_create_space(args: argparse.Namespace) -> None:
    """Create a space and make it active."""
    service = _service(args)
    ref = service.create_space(CreateSpaceDto(name=args.name, location=args.location))
    print(f"Created space {ref.name} at {ref.path}")


def _cmd_open(args: argparse.Namespace) -> None:
    """Make an existing space active."""
    service = _service(args)
    ref = service.get_spaceref(args.path)
    service.set_active_space(ref)
    print(f"Opened {ref.name}")


def _cmd_forget(args: argparse.Namespace) -> None:
    """Forget a space."""
    service = _service(args)
    path = str(Path(args.path).absolute())
    ref = next((r for r in service.state_store.get_spacerefs() if r.path == path), None)
    if ref is None:
        raise NotFoundError(f"{args.path}: not a known space")
    service.delete_space(ref)
    active = service.state_store.get_spaceref()
    print(f"Forgot {ref.name}" + (f", now on {active.name}" if active else ""))


def _cmd_tree(args: argparse.Namespace) -> None:
    """Print the active space's tree."""
    space = _active_space(_service(args))
    _print_collection(space.root_collection)


def _cmd_new_collection(args: argparse.Namespace) -> None:
    service = _service(args)
    item = service.create_collection(
        CreateCollectionDto(parent_relpath=args.parent, relpath=args.relpath)
    )
    print(f"Created collection {item.relpath}")


def _cmd_new_request(args: argparse.Namespace) -> None:
    service = _service(args)
    item = service.create_request(
        CreateRequestDto(parent_relpath=args.parent, relpath=args.relpath, method=args.method)
    )
    print(f"Created request {item.relpath}")


def _cmd_rename_collection(args: argparse.Namespace) -> None:
    _service(args).rename_collection(args.relpath, args.name)
    print(f"Renamed {args.relpath} to {args.name}")


def _cmd_move(args: argparse.Namespace) -> None:
    _service(args).move_tree_item(MoveTreeItemDto(src_relpath=args.src, dest_relpath=args.dest))
    print(f"Moved {args.src} to {args.dest}")


def _cmd_commit(args: argparse.Namespace) -> None:
    _service(args).commit_request(args.relpath)
    print(f"Saved {args.relpath}")


def _cmd_send(args: argparse.Namespace) -> None:
    """Send a request and print the response."""
    from zaku.transport import LogNotifier, RequestsTransport

    service = _service(args)
    space = _active_space(service)
    req = space.root_collection.find_request(args.relpath)
    if req is None:
        raise NotFoundError(f"{args.relpath}: request not found")

    res = service.send_request(req, RequestsTransport(timeout=args.timeout), LogNotifier())
    print(f"{res.status} ({res.elapsed_ms} ms, {res.size_bytes} bytes)")
    if args.include:
        for key, value in res.headers:
            print(f"{key}: {value}")
        print()
    print(res.data)


def _cmd_cookies(args: argparse.Namespace) -> None:
    """List or clear the active space's cookies."""
    service = _service(args)
    ref = service.state_store.get_spaceref()
    if ref is None:
        raise NotFoundError("No active space selected")
    if args.clear:
        service.clear_cookies(ref.path)
        print("Cleared cookies")
        return
    for domain, cookies in sorted(service.get_space_cookies(ref.path).items()):
        print(domain)
        for ck in cookies:
            print(f"  {ck.name}={ck.value}\tpath={ck.path}\texpires={ck.expires or 'session'}")


def _cmd_theme(args: argparse.Namespace) -> None:
    _service(args).set_default_theme(Theme.parse(args.theme))
    print(f"Default theme set to {args.theme}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="zaku",
        description="Manage Zaku spaces, collections and requests",
    )
    parser.add_argument("--data-dir", default=None, help="Application data directory")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # -- spaces --
    p_spaces = subparsers.add_parser("spaces", help="List known spaces")
    p_spaces.set_defaults(func=_cmd_spaces)

    # -- create-space --
    p_create = subparsers.add_parser("create-space", help="Create a space")
    p_create.add_argument("name", help="Space name")
    p_create.add_argument("-l", "--location", required=True, help="Parent directory")
    p_create.set_defaults(func=_cmd_create_space)

    # -- open / forget --
    p_open = subparsers.add_parser("open", help="Make a space active")
    p_open.add_argument("path", help="Space directory")
    p_open.set_defaults(func=_cmd_open)

    p_forget = subparsers.add_parser("forget", help="Forget a space")
    p_forget.add_argument("path", help="Space directory")
    p_forget.set_defaults(func=_cmd_forget)

    # -- tree --
    p_tree = subparsers.add_parser("tree", help="Print the active space")
    p_tree.set_defaults(func=_cmd_tree)

    # -- new-collection / new-request --
    p_col = subparsers.add_parser("new-collection", help="Create collections")
    p_col.add_argument("relpath", help="Collection path, e.g. 'Users/Admin'")
    p_col.add_argument("--parent", default="", help="Parent collection relpath")
    p_col.set_defaults(func=_cmd_new_collection)

    p_req = subparsers.add_parser("new-request", help="Create a request")
    p_req.add_argument("relpath", help="Request path, e.g. 'Users/Get user'")
    p_req.add_argument("--parent", default="", help="Parent collection relpath")
    p_req.add_argument("-X", "--method", default="GET", help="HTTP method")
    p_req.set_defaults(func=_cmd_new_request)

    # -- rename-collection / move --
    p_rename = subparsers.add_parser("rename-collection", help="Rename a collection")
    p_rename.add_argument("relpath", help="Collection relpath")
    p_rename.add_argument("name", help="New display name")
    p_rename.set_defaults(func=_cmd_rename_collection)

    p_move = subparsers.add_parser("move", help="Move a collection or request")
    p_move.add_argument("src", help="Source relpath")
    p_move.add_argument("dest", help="Destination relpath")
    p_move.set_defaults(func=_cmd_move)

    # -- commit / send --
    p_commit = subparsers.add_parser("commit", help="Save a request draft")
    p_commit.add_argument("relpath", help="Request relpath, e.g. 'users/get-user.toml'")
    p_commit.set_defaults(func=_cmd_commit)

    p_send = subparsers.add_parser("send", help="Send a request")
    p_send.add_argument("relpath", help="Request relpath, e.g. 'users/get-user.toml'")
    p_send.add_argument("--timeout", type=float, default=30.0, help="Timeout in seconds")
    p_send.add_argument("-i", "--include", action="store_true", help="Print response headers")
    p_send.set_defaults(func=_cmd_send)

    # -- cookies / theme --
    p_cookies = subparsers.add_parser("cookies", help="List the active space's cookies")
    p_cookies.add_argument("--clear", action="store_true", help="Remove every cookie")
    p_cookies.set_defaults(func=_cmd_cookies)

    p_theme = subparsers.add_parser("theme", help="Set the default theme")
    p_theme.add_argument("theme", choices=[t.value for t in Theme], help="Theme name")
    p_theme.set_defaults(func=_cmd_theme)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(load_settings().log_level)
    try:
        args.func(args)
    except ZakuError as e:
        print(f"error: {e.kind}: {e.message}", file=sys.stderr)
        sys.exit(1)
