"""Entry point for metricbridge."""

from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .errors import BridgeError
from .profiles import encode_line
from .runtime import run_bridge
from .telemetry import collect_samples


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Forward host metrics to collectd or Graphite, refreshing the last values.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect a single sample set and print the wire lines without connecting.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.json (defaults to METRICBRIDGE_CONFIG or the project config.json).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Override sampling interval (seconds).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        if args.once:
            config = load_config(args.config)
            profile = config.build_profile()
            for key, value in collect_samples(config.sampling.probes):
                sys.stdout.write(encode_line(profile, key, value))
            return 0

        asyncio.run(run_bridge(config_path=args.config, interval_override=args.interval))
    except (BridgeError, FileNotFoundError) as error:
        print(f"metricbridge: {error}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
