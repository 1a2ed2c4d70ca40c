from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import PipelineConfig, load_config
from .vocabulary import build_vocabulary


class ValidationError(Exception):
    ...


def validate_paths(config: PipelineConfig) -> None:
    for side in ("source", "target"):
        dataset = getattr(config, side)
        if not dataset.file.exists():
            raise ValidationError(f"{side} file not found: {dataset.file}")
    logger.info("paths ok: source={src}, target={tgt}", src=config.source.file, tgt=config.target.file)


def validate_vocabulary(config: PipelineConfig) -> None:
    vocabulary = build_vocabulary(config.vocabulary)
    logger.info(
        "vocabulary ok: {types} street type aliases, {communities} postal communities",
        types=len(vocabulary.street_types),
        communities=len(vocabulary.postal_communities),
    )


def run_validation(config_path: Path, check_vocabulary: bool = True) -> None:
    cfg = load_config(config_path)
    validate_paths(cfg)
    if check_vocabulary:
        validate_vocabulary(cfg)
    logger.info("configuration checks passed")
