from __future__ import annotations

import argparse
from pathlib import Path

from loguru import logger

from .config import ConfigurationError
from .validator import ValidationError, run_validation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="address-validate",
        description="Check an address-reconciler configuration file and its input paths",
    )
    parser.add_argument("config", type=Path, help="path to the YAML configuration")
    parser.add_argument(
        "--no-vocabulary",
        action="store_true",
        help="skip building the configured vocabulary tables",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        run_validation(args.config, check_vocabulary=not args.no_vocabulary)
    except (ValidationError, ConfigurationError) as exc:
        logger.error(str(exc))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
