#!/usr/bin/env python3
"""
ShrinkWrap - command line version
Recompress an image toward a percentage of its original size
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from shrinkwrap.compression import (
    CompressionEngine,
    CompressionError,
    EncoderOptions,
    HttpSuggester,
    SuggestionError,
)
from shrinkwrap.logger import close_logger, get_logger, log_separator, setup_file_logging
from shrinkwrap.session import CompressionSession
from shrinkwrap.settings import load_settings
from shrinkwrap.utils import format_size_kb, is_supported_format


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shrinkwrap",
        description="Recompress an image so its size approximates a percentage of the original.",
        epilog="Examples:\n"
               "  shrinkwrap photo.jpg -t 50\n"
               "  shrinkwrap diagram.png -t 100 -o diagram_clean.png\n"
               "  shrinkwrap photo.webp --suggest\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "input",
        help="JPEG, PNG or WEBP image to compress",
    )
    parser.add_argument(
        "-t", "--target",
        type=int,
        default=None,
        help="Target size as percent of the original (1-100)",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output path (default: <name>_compressed_target_<pct>pct.<ext> next to the input)",
    )
    parser.add_argument(
        "--suggest",
        action="store_true",
        help="Ask the configured model for a target and use it",
    )
    parser.add_argument(
        "--ssim",
        action="store_true",
        help="Report structural similarity (requires scikit-image)",
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="Settings JSON file (default: shrinkwrap_settings.json)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show every encode trial",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit code"""
    args = build_parser().parse_args(argv)
    console = Console()
    settings = load_settings(args.settings)

    log_path = setup_file_logging(
        settings.log_file, logging.DEBUG if args.verbose else logging.INFO
    )
    log = get_logger("cli")
    log.info(f"Starting ShrinkWrap on {args.input}")
    log_separator()

    try:
        return _run(args, settings, console)
    except Exception as ex:
        log.exception(f"FATAL ERROR: {ex}")
        console.print(f"[red]Unexpected error:[/red] {ex}")
        console.print(f"See {log_path} for details.")
        return EXIT_FAILED
    finally:
        close_logger()


def _run(args, settings, console: Console) -> int:
    if args.target is not None and not 1 <= args.target <= 100:
        console.print(f"[red]Target must be between 1 and 100, got {args.target}[/red]")
        return EXIT_BAD_INPUT

    input_path = Path(args.input)
    if not input_path.is_file():
        console.print(f"[red]File not found:[/red] {input_path}")
        return EXIT_BAD_INPUT
    if not is_supported_format(input_path):
        get_logger("cli").warning(f"Unrecognized extension on {input_path.name}, detecting type from content")

    def trace(iteration: int, quality: int, size: int, adopted: bool):
        if args.verbose:
            mark = " [green]best[/green]" if adopted else ""
            console.print(f"  trial {iteration + 1}: quality {quality:3d} -> {format_size_kb(size)}{mark}")

    engine = CompressionEngine(options=EncoderOptions(
        chroma_subsampling=settings.chroma_subsampling,
        use_mozjpeg=settings.use_mozjpeg,
    ))
    suggester = None
    if args.suggest:
        suggester = HttpSuggester(
            api_key=settings.suggester_api_key,
            endpoint=settings.suggester_endpoint,
            model=settings.suggester_model,
            timeout=settings.suggester_timeout,
        )

    session = CompressionSession(
        engine=engine,
        suggester=suggester,
        default_target=settings.default_target_percentage,
        calculate_ssim=args.ssim or settings.calculate_ssim,
        progress_callback=trace,
    )

    try:
        source = session.load_file(input_path)
    except CompressionError as ex:
        console.print(f"[red]Cannot use {input_path.name}:[/red] {ex}")
        return EXIT_BAD_INPUT

    if args.target is not None:
        session.target_percentage = args.target

    if args.suggest:
        try:
            suggestion = session.suggest()
        except SuggestionError as ex:
            console.print(f"[red]Suggestion failed:[/red] {ex}")
            return EXIT_FAILED
        console.print(f"Suggested target: [bold]{suggestion.percentage}%[/bold]")
        if suggestion.reasoning:
            console.print(f"[italic]{suggestion.reasoning}[/italic]")

    outcome = session.compress()
    if not outcome.ok:
        console.print(f"[red]Compression failed ({outcome.error_kind}):[/red] {outcome.error}")
        return EXIT_FAILED

    result = outcome.result
    output_path = Path(args.output) if args.output else input_path.with_name(session.download_name())
    output_path.write_bytes(result.encoded_bytes)

    table = Table(title=f"ShrinkWrap: {source.name}")
    table.add_column("", style="bold")
    table.add_column("Original")
    table.add_column("Compressed")
    table.add_row("Type", source.mime_type, result.mime_type)
    table.add_row("Dimensions", "{}x{}".format(*session.dimensions), "{}x{}".format(*result.dimensions))
    table.add_row("Size", format_size_kb(source.original_size_bytes), format_size_kb(result.size_bytes))
    table.add_row("Target", "", f"{outcome.target_percentage:g}%")
    table.add_row("Quality", "", str(result.quality_setting))
    table.add_row("Savings", "", f"{session.savings_percent():.1f}%")
    if result.ssim_score is not None:
        table.add_row("SSIM", "", f"{result.ssim_score:.4f}")
    console.print(table)
    console.print(result.message)
    console.print(f"Saved to {output_path}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
