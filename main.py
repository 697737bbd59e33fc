#!/usr/bin/env python3
"""
manifest-backup: schedule regular backups of the paths listed in a manifest.

Setup entry point: validates the backup folder and manifest, installs a cron
job for the chosen interval, optionally runs the first backup right away and
optionally removes installed cron jobs.
"""

import argparse
import functools
import logging
import sys
from datetime import datetime
from typing import List, Optional

from manifest_backup.backup_manager import ManifestProcessor
from manifest_backup.config import (
    DEFAULT_DESTINATION_SENTINEL,
    DestinationMissing,
    ManifestInvalid,
    SetupConfig,
    load_config,
    resolve_destination,
    validate_manifest,
)
from manifest_backup.crontab import CrontabScheduler, SchedulerUnavailable
from manifest_backup.logging_setup import setup_logging
from manifest_backup.schedule_translator import (
    InvalidCadence,
    ScheduleTranslator,
    build_runner_command,
    translate,
)

# argparse would read "-na" as an option, so it travels as this placeholder.
_SENTINEL_PLACEHOLDER = "\0" + DEFAULT_DESTINATION_SENTINEL

USAGE = "Usage: manifest-backup <backup folder or -na> <file with folders/files to backup>"
INTERVAL_PROMPT = "Set up a cron job for daily (d), weekly (w), monthly (m), or minute (#) intervals: "


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="manifest-backup",
        description="Back up the files and folders listed in a manifest on a cron schedule",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Intervals:
  d - daily, w - weekly, m - monthly, or a number (#) for minutes

Examples:
  python main.py -na file_list.txt --interval d            # ./BACKUP, daily at 02:00
  python main.py /mnt/backup /home/me/list.txt -i 30 --run-now
  python main.py /mnt/backup /home/me/list.txt -i w --remove-jobs
        """,
    )

    parser.add_argument(
        "destination",
        help=f"Absolute path of the backup folder, or '{DEFAULT_DESTINATION_SENTINEL}' "
        "to create a BACKUP folder in the current directory",
    )
    parser.add_argument(
        "manifest",
        help="Text file listing the absolute paths of files/folders to back up, one per line",
    )
    parser.add_argument("--interval", "-i", help="Backup frequency: d, w, m or minutes")
    parser.add_argument(
        "--run-now",
        action="store_true",
        default=None,
        help="Run the initial backup immediately after installing the cron job",
    )

    removal = parser.add_mutually_exclusive_group()
    removal.add_argument(
        "--remove-jobs",
        dest="remove_jobs",
        action="store_const",
        const="installed",
        help="Remove the cron jobs installed by this tool",
    )
    removal.add_argument(
        "--remove-all-jobs",
        dest="remove_jobs",
        action="store_const",
        const="all",
        help="Remove ALL cron jobs of the current user, including unrelated ones",
    )

    parser.add_argument("--config", "-c", help="YAML file with setup options")
    parser.add_argument("--log-level", help="Logging level (default INFO)")
    parser.add_argument("--log-file", help="Log file path, also used by the scheduled runs")

    if argv is None:
        argv = sys.argv[1:]
    argv = [_SENTINEL_PLACEHOLDER if arg == DEFAULT_DESTINATION_SENTINEL else arg for arg in argv]

    args = parser.parse_args(argv)
    if args.destination == _SENTINEL_PLACEHOLDER:
        args.destination = DEFAULT_DESTINATION_SENTINEL
    return args


def build_config(args: argparse.Namespace) -> SetupConfig:
    """
    Validate the inputs and build the setup configuration.

    Values from ``--config`` are applied first; command line flags override them.

    Raises:
        DestinationMissing: Backup folder does not exist
        ManifestInvalid: Manifest missing or empty
        ValueError: Invalid configuration values
    """
    options = load_config(args.config) if args.config else {}

    options["manifest"] = validate_manifest(args.manifest)
    options["destination"] = resolve_destination(args.destination)

    overrides = {
        "interval": args.interval,
        "run_now": args.run_now,
        "remove_jobs": args.remove_jobs,
        "log_level": args.log_level,
        "log_file": args.log_file,
    }
    options.update({key: value for key, value in overrides.items() if value is not None})

    return SetupConfig(**options)


def prompt_interval() -> Optional[str]:
    """Ask for the interval when attached to a terminal."""
    if not sys.stdin.isatty():
        return None
    return input(INTERVAL_PROMPT).strip() or None


def run_setup(config: SetupConfig, translator: ScheduleTranslator, logger: logging.Logger) -> int:
    """Install the cron job, then run and remove jobs as configured."""
    interval = config.interval or prompt_interval()
    if interval is None:
        raise InvalidCadence("No interval given. Use --interval with d, w, m or a number of minutes.")

    descriptor = translate(interval, config.destination, config.manifest, config.schedule)
    translator.install(descriptor)
    logger.info(f"Next backup at {translator.next_run_time(descriptor):%Y-%m-%d %H:%M}")

    exit_code = 0
    if config.run_now:
        logger.info("Running initial backup")
        result = ManifestProcessor().run(config.destination, config.manifest)
        exit_code = result.exit_code

    if config.remove_jobs == "installed":
        translator.remove_installed()
    elif config.remove_jobs == "all":
        translator.remove_all()

    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    start_time = datetime.now()
    args = parse_arguments(argv)

    try:
        config = build_config(args)
    except (DestinationMissing, ManifestInvalid) as e:
        print(f"Error: {e}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"ERROR: Configuration file error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: Configuration validation error: {e}", file=sys.stderr)
        return 1

    logger = setup_logging(config.log_level, config.log_file)
    logger.info(f"Backup folder: {config.destination}")
    logger.info(f"Input file: {config.manifest}")

    command_builder = functools.partial(
        build_runner_command, log_level=config.log_level, log_file=config.log_file
    )
    translator = ScheduleTranslator(CrontabScheduler(), command_builder)

    try:
        return run_setup(config, translator, logger)

    except InvalidCadence as e:
        logger.error(str(e))
        return 1

    except SchedulerUnavailable as e:
        logger.error(f"Cron is not available: {e}")
        return 1

    except OSError as e:
        logger.error(f"Backup failed: {e}")
        return 1

    except KeyboardInterrupt:
        logger.warning("Setup interrupted by user")
        return 130

    finally:
        total_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"Setup completed in {total_time:.2f} seconds")


if __name__ == "__main__":
    sys.exit(main())
