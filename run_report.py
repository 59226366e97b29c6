#!/usr/bin/env python3
"""
CLI entrypoint: build a vetted content package for a free-text request.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from chart_data import fetch_rows
from config import DeckConfig
from file_utils import file_manager, write_json
from harvest import InsufficientSourcesError
from logging_utils import capture_terminal_output, get_error_info, log_exception, setup_run_logging
from outline_client import LLMOutlineGenerator
from pipeline import ContentPipeline
from search_client import SearchClient

EXIT_INSUFFICIENT_SOURCES = 2


def enable_debug_logging() -> None:
    logging.getLogger().setLevel(logging.DEBUG)
    for logger_name in logging.Logger.manager.loggerDict:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a vetted slide/content package.")
    parser.add_argument("prompt", type=str, help="Free-text request, e.g. 'ant life cycle report'.")
    parser.add_argument(
        "--min-sources",
        type=int,
        default=DeckConfig.MIN_VETTED_SOURCES,
        help="Vetted-source floor for report/analysis requests.",
    )
    parser.add_argument("--max-charts", type=int, default=DeckConfig.MAX_CHARTS, help="Chart cap per document.")
    parser.add_argument(
        "--renderers",
        type=str,
        default=",".join(DeckConfig.REPORT_RENDERERS),
        help="Comma-separated output formats (markdown,json).",
    )
    parser.add_argument("--output-dir", type=str, default=DeckConfig.OUTPUT_DIR, help="Base output directory.")
    parser.add_argument("--debug", action="store_true", help="Enable verbose logging.")
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Emit step-by-step pipeline traces (queries, harvest rounds, chart decisions).",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    load_dotenv()

    if not os.getenv("OPENAI_API_KEY"):
        print("❌ Missing OPENAI_API_KEY. Set it in your environment or .env file.")
        sys.exit(1)

    file_manager.base_output_dir = args.output_dir
    package_dir = file_manager.create_package_directory(args.prompt)
    run_logger, log_path = setup_run_logging(package_dir, args.prompt)

    with capture_terminal_output(log_path):
        if args.debug:
            enable_debug_logging()
            run_logger.debug("Debug logging enabled.")

        print("🚀 Deck Builder")
        print(f"📊 Prompt: {args.prompt}")
        print(f"📚 Vetted-source floor: {args.min_sources}")
        print("=" * 60)

        try:
            pipeline = ContentPipeline(
                searcher=SearchClient(tavily_api_key=os.getenv("TAVILY_API_KEY", ""), trace_mode=args.trace),
                outline_generator=LLMOutlineGenerator(os.getenv("OPENAI_API_KEY")),
                fetch_rows=fetch_rows,
                min_sources=args.min_sources,
                max_charts=args.max_charts,
                trace_mode=args.trace,
            )
            package = pipeline.build(args.prompt)
        except InsufficientSourcesError as exc:
            run_logger.error("Threshold failure: %s", exc.to_dict())
            write_json(Path(package_dir) / "error.json", get_error_info(exc, {"prompt": args.prompt}))
            print(f"❌ Not enough vetted sources: found {exc.achieved}, need {exc.required}.")
            print(f"   Rounds attempted: {', '.join(exc.rounds_completed) or 'none'}")
            sys.exit(EXIT_INSUFFICIENT_SOURCES)
        except Exception as exc:
            log_exception(run_logger, exc, context="build_package", prompt=args.prompt)
            write_json(Path(package_dir) / "error.json", get_error_info(exc, {"prompt": args.prompt}))
            print("❌ Package build failed. Check logs for details.")
            sys.exit(1)

        renderer_names = [name.strip() for name in args.renderers.split(",") if name.strip()]
        try:
            file_manager.save_package(package, package_dir=package_dir, renderer_names=renderer_names)
        except Exception as exc:
            log_exception(run_logger, exc, context="save_package", prompt=args.prompt)
            print("❌ Failed to persist package artifacts.")
            sys.exit(1)

        print("\n✅ Package ready.")
        print(f"📁 Output directory: {package_dir}")
        print(f"🧭 {len(package.slides)} slides · {len(package.charts)} charts · {len(package.sources)} sources")


if __name__ == "__main__":
    main()
