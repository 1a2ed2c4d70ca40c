from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from .config import ConfigurationError, load_config
from .pipeline import ReconciliationPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="address-reconcile",
        description="Reconcile two address datasets and report matches, divergences and gaps",
    )
    parser.add_argument(
        "config",
        type=Path,
        help="path to the YAML configuration",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    config_path: Path = args.config
    try:
        pipe_config = load_config(config_path)
        pipeline = ReconciliationPipeline(pipe_config)
    except ConfigurationError as exc:
        logger.error(str(exc))
        raise SystemExit(1)
    logger.remove()
    logger.add(sys.stderr, level=pipe_config.runtime.log_level.upper())

    logger.info("loading {} and {}", pipe_config.source.file, pipe_config.target.file)
    pipeline.load()
    logger.info("reconciling")
    result = pipeline.run()
    pipeline.export(result)
    logger.info("done: {}", result.report.counts())


if __name__ == "__main__":
    main()
