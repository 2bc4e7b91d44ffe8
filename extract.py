#!/usr/bin/env python3
"""
SG Sprite Extractor - Main Entry Point

Reconstructs character sprites from .lay layout files and their atlases:
- Primary variants written as <name>_N.png
- Overlays written separately as transparent <name>_oN.png
"""
import glob
import logging
import os
import sys
from argparse import ArgumentParser
from pathlib import Path

from sg_sprite_extractor import (
    Config,
    MASK_RULES,
    setup_logging,
    process_layouts_concurrent,
)
from sg_sprite_extractor.constants import LAYOUT_EXTENSION

log = logging.getLogger(__name__)


def expand_inputs(patterns: list[str]) -> list[Path]:
    """Expand globs and directories into an ordered, de-duplicated list of layout files.

    Globs that match nothing are skipped; literal paths are always kept so a
    missing file is reported as a failed input.
    """
    found: list[Path] = []
    for pattern in patterns:
        matches = sorted(glob.glob(pattern)) if glob.has_magic(pattern) else [pattern]
        for match in matches:
            path = Path(match)
            if path.is_dir():
                found.extend(sorted(p for p in path.iterdir()
                                    if p.is_file() and p.name.lower().endswith(LAYOUT_EXTENSION)))
            else:
                found.append(path)
        if not matches:
            log.warning(f"SKIP {pattern}: no files matched")
    return list(dict.fromkeys(found))


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(description="Extract character sprites from .lay layouts and their atlas images.")
    parser.add_argument("layouts", nargs="+",
        help="Layout files, directories or glob patterns (e.g. 'chara/*.lay')")
    parser.add_argument("-o", "--output", type=Path, default=Path("."),
        help="Output directory (default: current directory)")
    parser.add_argument("-j", "--jobs", type=int, default=os.cpu_count() or 4,
        help="Number of concurrent jobs (default: CPU count)")
    parser.add_argument("--overlay-mask", type=str, default="colorkey", choices=sorted(MASK_RULES),
        help="Rule deriving overlay transparency (default: colorkey)")
    parser.add_argument("--timeout", type=float, default=None,
        help="Give up on a single layout after this many seconds")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def main(argv=None) -> int:
    """Main entry point for extraction.

    Args:
        argv: Optional list of command-line arguments. If None, uses sys.argv.
              Example: ['chara/*.lay', '-o', 'output']

    Returns:
        0 when every layout was extracted, 1 if any failed.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.jobs < 1:
        parser.error("-j/--jobs must be at least 1")
    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be positive")

    config = Config(
        output_dir=args.output,
        jobs=args.jobs,
        overlay_mask=args.overlay_mask,
        timeout=args.timeout,
        debug=args.debug,
    )
    setup_logging(config.debug)

    layouts = expand_inputs(args.layouts)
    if not layouts:
        parser.error("no layout files matched the given inputs")
    log.debug(f"Found {len(layouts)} layout file(s) to process.")

    report = process_layouts_concurrent(layouts, config)
    report.log_summary()
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
