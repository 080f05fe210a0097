from __future__ import annotations

import argparse
import sys
from typing import Callable

from appctl.compose_ops import ComposeError, DeploymentNotFound, check_dependencies
from appctl.lifecycle import EXIT_FAILURE, EXIT_OK, AppController
from appctl.settings import Settings

COMMANDS = """\
commands:
  start    start the application and watch it (default)
  stop     stop the application
  restart  restart the application and watch it
  status   show container status, resource usage and access URLs
  logs     follow the application logs
  help     show this help
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="appctl",
        description="docker-compose application launcher",
        epilog=COMMANDS,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    p.add_argument("action", nargs="?", default="start", help="command to run (default: start)")
    p.add_argument("-h", "--help", action="store_true", help="show this help")
    return p


def main(
    argv: list[str] | None = None,
    settings: Settings | None = None,
    controller: AppController | None = None,
    deps_check: Callable[[str], dict[str, str]] = check_dependencies,
) -> int:
    p = build_parser()
    args, _ = p.parse_known_args(argv)

    if args.help or args.action == "help":
        print(p.format_help())
        return EXIT_OK

    if controller is not None:
        settings = controller.settings
    settings = settings or Settings.from_env()
    ctl = controller or AppController(settings)
    events = ctl.events

    if args.action not in {"start", "stop", "restart", "status", "logs"}:
        events.error(f"Unknown action: {args.action}")
        print(p.format_help())
        return EXIT_FAILURE

    try:
        events.info("Checking system dependencies...")
        versions = deps_check(settings.compose_cmd)
        events.info(f"Docker version: {versions['docker']}")
        events.info(f"Docker Compose version: {versions['compose']}")

        if args.action == "start":
            return ctl.supervise()
        if args.action == "restart":
            return ctl.supervise(restart=True)
        if args.action == "stop":
            return ctl.stop()
        if args.action == "status":
            return ctl.status()
        return ctl.logs()
    except DeploymentNotFound as e:
        events.error(str(e))
        return EXIT_FAILURE
    except ComposeError as e:
        events.error(f"{type(e).__name__}: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
