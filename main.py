#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for Chartor

Runs the chart pipeline once over a data directory (or a running Chartor
server), exports the aggregates and prints a summary.
"""

import argparse
import sys
import logging
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from src.chartor import ChartPipeline, ChartorError, ResultExporter
from src.utils import Config, setup_logging, SampleDataGenerator


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the Chartor pipeline once.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--data-dir', help="Directory holding the CSV dataset files")
    source.add_argument('--base-url', help="URL of a running Chartor server")
    parser.add_argument('--output-dir', help="Where to write the exported aggregates")
    parser.add_argument('--departments', action='store_true',
                        help="Also aggregate by French department")
    parser.add_argument('--generate-sample', action='store_true',
                        help="Write sample dataset files into the data directory first")
    parser.add_argument('--config', help="JSON configuration file; other options override it")
    parser.add_argument('--dump-config', metavar='PATH',
                        help="Write the effective configuration to PATH and exit")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main execution function."""
    args = parse_args(argv)

    # Initialize configuration
    overrides = {}
    if args.data_dir:
        overrides['data_dir'] = args.data_dir
    if args.base_url:
        overrides['base_url'] = args.base_url
    if args.output_dir:
        overrides['output_dir'] = args.output_dir
    if args.departments:
        overrides['enable_department_aggregation'] = True
    try:
        config = Config.load_from_file(args.config, overrides) if args.config else Config(overrides)
    except (OSError, ValueError) as e:
        print(f"Cannot read configuration file '{args.config}': {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="pipeline.log",
        log_dir=config.LOG_DIR
    )

    logger = logging.getLogger(__name__)
    logger.info("="*60)
    logger.info("CHARTOR PIPELINE - MAIN EXECUTION")
    logger.info("="*60)

    invalid = [name for name, ok in config.validate_config().items() if not ok]
    if invalid:
        logger.error(f"Invalid configuration values: {', '.join(invalid)}")
        return 1

    try:
        if args.dump_config:
            config.save_to_file(args.dump_config)
            logger.info(f"Configuration written to {args.dump_config}")
            return 0

        config.ensure_directories()

        if args.generate_sample:
            if config.BASE_URL:
                logger.error("--generate-sample needs a local data directory")
                return 1
            logger.info("Generating sample data...")
            generation_stats = SampleDataGenerator(seed=42).generate_directory(config.DATA_DIR)
            logger.info(f"Sample data generated: {generation_stats}")

        pipeline = ChartPipeline(config=config)
        result = pipeline.run()

        saved_files = ResultExporter(config.OUTPUT_DIR).save_all(result)

        _print_execution_summary(result, saved_files)
        logger.info("Pipeline execution completed successfully!")
        return 0

    except (ChartorError, OSError, ValueError) as e:
        logger.error(f"Pipeline execution failed: {e}", exc_info=True)
        return 1


def _print_execution_summary(result, saved_files: dict) -> None:
    """Print final execution summary."""
    timings = result.timings

    print("\n" + "="*70)
    print("CHARTOR EXECUTION SUMMARY")
    print("="*70)

    print("Data:")
    print(f"   • Years loaded: {', '.join(sorted(result.cleaned.data)) or '(none)'}")
    print(f"   • Records kept: {result.cleaned.record_count():,}")
    print(f"   • Cities: {len(result.by_city.data):,}")
    print(f"   • Museums: {len(result.by_museum.data):,}")
    if result.by_department is not None:
        print(f"   • Departments: {len(result.by_department.data):,}")

    print("\nTimings:")
    print(f"   • Load: {timings.time_load * 1000:.1f} ms")
    print(f"   • Merge: {timings.time_merge * 1000:.1f} ms")
    print(f"   • Cleanup: {timings.time_cleanup * 1000:.1f} ms")
    for name, seconds in timings.aggregations.items():
        print(f"   • Aggregate {name}: {seconds * 1000:.1f} ms")

    print("\nGenerated Outputs:")
    for name, file_path in saved_files.items():
        print(f"   • {name}: {Path(file_path).name}")

    print("="*70)


if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
