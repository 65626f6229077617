from __future__ import annotations

import argparse

from releasegate.cli.common import (
    dispatch_subparser_help,
    find_log_file,
    format_mtime,
    infer_run_status,
    list_run_files,
    print_table,
    print_tail,
    resolve_log_dir,
)


def build_logs_parser(subparsers: argparse._SubParsersAction) -> None:
    logs = subparsers.add_parser("logs", help="Inspect run logs")
    lsub = logs.add_subparsers(dest="logs_cmd", required=True)

    help_p = lsub.add_parser("help", help="Show help for logs")
    help_p.add_argument("path", nargs="*", help="Subcommand path (e.g. list, show)")
    help_p.set_defaults(action="help", _help_parser=logs)

    list_p = lsub.add_parser("list", help="List runs with their final status")
    list_p.add_argument(
        "--of", dest="log_command", help="Only logs of this command (logs/<command>/)"
    )
    list_p.add_argument("--dir", help="Explicit log directory")
    list_p.set_defaults(action="list")

    show_p = lsub.add_parser("show", help="Show a run log (tail)")
    show_p.add_argument("name", help="Log filename or stem")
    show_p.add_argument(
        "--of", dest="log_command", help="Only logs of this command (logs/<command>/)"
    )
    show_p.add_argument("--dir", help="Explicit log directory")
    show_p.add_argument("--tail", type=int, default=120, help="Lines from end")
    show_p.set_defaults(action="show")


def handle_logs(args: argparse.Namespace) -> int:
    if args.action == "help":
        return dispatch_subparser_help(
            args._help_parser, list(getattr(args, "path", []) or [])
        )

    log_dir = resolve_log_dir(
        command=getattr(args, "log_command", None), explicit=getattr(args, "dir", None)
    )

    if args.action == "list":
        rows = [
            [r.run_id, infer_run_status(r.path), format_mtime(r.mtime), f"{r.size} bytes"]
            for r in list_run_files(log_dir)
        ]
        print_table(["run", "status", "time", "size"], rows)
        return 0

    if args.action == "show":
        path = find_log_file(log_dir, args.name)
        if not path:
            print(f"Log not found: {args.name}")
            return 1

        print(f"Run:    {path.stem}")
        print(f"Path:   {path}")
        print(f"Status: {infer_run_status(path)}")
        print()
        print_tail(path, int(args.tail))
        return 0

    raise SystemExit(f"Unknown logs action: {args.action}")
