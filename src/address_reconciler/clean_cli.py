from __future__ import annotations

import argparse
from pathlib import Path

from loguru import logger

from .address_cleaner import AddressCleaner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="address-clean",
        description="Split an address column of a spreadsheet into its components",
    )
    parser.add_argument("-i", "--input", type=Path, required=True, help="input CSV or Excel file")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="output Excel file, defaults to <input name>_clean.xlsx",
    )
    parser.add_argument(
        "-c",
        "--column",
        default="address",
        help="name of the address column, defaults to 'address'",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    input_path: Path = args.input
    if not input_path.exists():
        logger.error("input file not found: {}", input_path)
        raise SystemExit(1)
    output_path: Path
    if args.output:
        output_path = args.output
    else:
        output_path = input_path.with_name(f"{input_path.stem}_clean.xlsx")
    cleaner = AddressCleaner()
    logger.info("reading {}", input_path)
    cleaner.process_file(input_path, output_path, args.column)
    logger.info("cleaned addresses written to {}", output_path)


if __name__ == "__main__":
    main()
