#!/usr/bin/env python
"""Launch StarCraft II, wait for its control port, optionally switch build, shut down.

Usage::

    python scripts/launch_game.py
    python scripts/launch_game.py --instances 2          # two tiled windows
    python scripts/launch_game.py --exe ~/StarCraftII/Versions/Base75689/SC2_x64
    python scripts/launch_game.py --build 75689 --data-version B89B5D6FA7CBF6452E721311BFBC6CB2
    python scripts/launch_game.py --resolve-only -v      # print resolved config and exit
    python scripts/launch_game.py --versions my_versions.yaml --build 80000 --data-version ABCD
"""

from __future__ import annotations

import dataclasses
import logging
import sys
import time

# Allow running from project root
sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parent.parent))

from scripts._cli_utils import Timer, base_argparser, setup_logging

logger = logging.getLogger(__name__)


def build_resolver(versions_path: str | None = None):
    """Version resolver using the built-in table plus an optional YAML table.

    Entries loaded from ``versions_path`` come last, so they override
    built-in entries for the same build.
    """
    from src.game_controller import KNOWN_VERSIONS, VersionResolver, load_version_table

    if versions_path is None:
        return VersionResolver()
    extra = load_version_table(versions_path)
    logger.info("Loaded %d extra version(s) from %s", len(extra), versions_path)
    return VersionResolver(versions=KNOWN_VERSIONS + extra)


def main() -> int:
    parser = base_argparser("Launch StarCraft II and wait until it is reachable.")
    parser.add_argument("--exe", default=None, help="Executable path (default: from ExecuteInfo.txt)")
    parser.add_argument("--instances", type=int, default=1, help="Instances to launch (default: %(default)s)")
    parser.add_argument("--build", type=int, default=None, help="Relaunch to this base build once ready")
    parser.add_argument("--data-version", default=None, help="Data version matching --build")
    parser.add_argument(
        "--versions",
        default=None,
        help="YAML list of {label, build, data_hash} entries added to the known versions",
    )
    parser.add_argument(
        "--hold",
        type=float,
        default=0.0,
        help="Seconds to keep the game running before shutdown (default: %(default)s)",
    )
    parser.add_argument(
        "--resolve-only",
        action="store_true",
        help="Print the resolved configuration without launching",
    )
    args = parser.parse_args()
    setup_logging(args.verbose)

    if (args.build is None) != (args.data_version is None):
        parser.error("--build and --data-version must be given together")

    from src.game_controller import GameControllerError, load_launch_defaults, starcraft2_game

    defaults = load_launch_defaults(args.config)
    resolver = build_resolver(args.versions)

    builders = []
    for _ in range(args.instances):
        builder = starcraft2_game(defaults=defaults, resolver=resolver)
        if args.exe:
            builder.with_executable_path(args.exe)
        builders.append(builder)

    if args.resolve_only:
        for builder in builders:
            for key, value in dataclasses.asdict(builder.game_configuration()).items():
                print(f"{key:>18}: {value}")
            print()
        return 0

    sessions = []
    try:
        for builder in builders:
            with Timer("launch") as t:
                session = builder.launch()
                sessions.append(session)
                session.until_ready()
            logger.info("[%s] READY (PID %d, took %.1fs)", session.name, session.process.pid, t.elapsed)

        if args.build is not None:
            for session in sessions:
                session.relaunch_if_needed(args.build, args.data_version).until_ready()

        if args.hold > 0:
            logger.info("Holding for %.0fs ...", args.hold)
            time.sleep(args.hold)
    except GameControllerError as exc:
        logger.error("Launch failed: %s", exc)
        return 1
    finally:
        for session in sessions:
            session.stop_and_wait()

    return 0


if __name__ == "__main__":
    sys.exit(main())
