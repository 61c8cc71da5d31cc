# ref_watcher/main.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
CLI entry point for the ref-watcher service.

Usage:
    python -m ref_watcher <root> [--config ref-watcher.yaml]
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

import yaml
from pydantic import ValidationError

from .config import DedupPolicy, OutputMode, WatcherConfig
from .errors import FatalInitError
from .watcher import FileWatcher

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ref-watcher",
        description="Watch a Go source tree and keep a JSON reference index up to date",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Watch ./proj, writing reference.json
    python -m ref_watcher ./proj

    # Mirror one JSON file per source file under references/
    python -m ref_watcher ./proj --mode mirror

    # Settings from YAML, with verbose logging
    python -m ref_watcher ./proj --config ref-watcher.yaml --verbose
        """,
    )
    parser.add_argument("root", type=Path, help="Directory to watch")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to watcher configuration YAML file",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in OutputMode],
        help="Output mode (default: aggregate)",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in DedupPolicy],
        help="Duplicate suppression policy (default: windowed)",
    )
    parser.add_argument(
        "--debounce-ms",
        type=int,
        help="Quiescence window for the windowed policy (default: 100)",
    )
    parser.add_argument(
        "--no-initial-scan",
        action="store_true",
        help="Do not index existing files at startup",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    return parser


def load_config(args: argparse.Namespace) -> WatcherConfig:
    """Merge the YAML file (if any) with command-line overrides."""
    return WatcherConfig.from_yaml(
        args.config,
        root=args.root,
        output_mode=args.mode,
        dedup_policy=args.policy,
        debounce_ms=args.debounce_ms,
        initial_scan=False if args.no_initial_scan else None,
    )


def install_signal_handlers(watcher: FileWatcher) -> None:
    """Route SIGINT/SIGTERM to watcher.stop()."""

    def signal_handler(signum, frame):
        """Handle shutdown signals."""
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, shutting down gracefully...")
        watcher.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the ref-watcher CLI.

    Returns:
        Exit code (0 after a clean shutdown, 1 on startup failure).
    """
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args)
    except FileNotFoundError as e:
        logger.error(f"Config file not found: {e.filename}")
        return 1
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in config file: {e}")
        return 1
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    watcher = FileWatcher(config)
    install_signal_handlers(watcher)
    try:
        watcher.start()
    except FatalInitError as e:
        logger.error(f"Error initializing file watcher: {e}")
        return 1

    watcher.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
