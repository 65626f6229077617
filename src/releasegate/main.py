from __future__ import annotations

import argparse
import sys

from releasegate.bootstrap import bootstrap_base_env, bootstrap_run_context


def _dispatch_help(parser: argparse.ArgumentParser, argv: list[str]) -> int:
    # Support:
    #   releasegate help
    #   releasegate help run
    #   releasegate logs help
    if argv and argv[0] == "help":
        argv = argv[1:]
    argv = [a for a in argv if a != "help"]

    if not argv:
        parser.print_help()
        return 0

    try:
        build_parser().parse_args(argv + ["--help"])
    except SystemExit:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    from releasegate import __version__

    p = argparse.ArgumentParser(
        prog="releasegate",
        description="Conditional release pipeline for Salesforce metadata",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = p.add_subparsers(dest="command", required=True)

    help_cmd = sub.add_parser("help", help="Show help")
    help_cmd.add_argument("path", nargs="*", help="Command path to show help for")
    help_cmd.set_defaults(_help=True)

    # Keep imports inside builder to avoid early side effects.
    from releasegate.cli.cli_env import build_env_parser
    from releasegate.cli.cli_logs import build_logs_parser
    from releasegate.cli.cli_plan import build_plan_parser
    from releasegate.cli.cli_run import build_run_parser

    build_run_parser(sub)
    build_plan_parser(sub)
    build_env_parser(sub)
    build_logs_parser(sub)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Load .env and base environment early
    bootstrap_base_env()

    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)

    # Unified help routing
    if getattr(args, "_help", False) or (unknown and unknown[-1] == "help"):
        return _dispatch_help(parser, argv)
    if unknown:
        parser.error(f"unrecognized arguments: {' '.join(unknown)}")

    # Stamp run context before logging reads it
    bootstrap_run_context(
        command=args.command,
        verbose=bool(getattr(args, "verbose", False)),
        quiet=bool(getattr(args, "quiet", False)),
    )

    from releasegate.logger import init_logging

    init_logging()

    if args.command == "run":
        from releasegate.cli.cli_run import handle_run

        return handle_run(args)

    if args.command == "plan":
        from releasegate.cli.cli_plan import handle_plan

        return handle_plan(args)

    if args.command == "env":
        from releasegate.cli.cli_env import handle_env

        return handle_env(args)

    if args.command == "logs":
        from releasegate.cli.cli_logs import handle_logs

        return handle_logs(args)

    raise RuntimeError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
