"""Entry point for a single backup pass, invoked by the installed cron job."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .backup_manager import ManifestProcessor
from .logging_setup import setup_logging


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="manifest-backup-run",
        description="Copy every path listed in a manifest into a backup folder",
    )
    parser.add_argument("destination", help="Backup folder")
    parser.add_argument("manifest", help="Text file listing one absolute path per line")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", help="Append log output to this file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Run one backup pass and return the process exit code."""
    args = parse_arguments(argv)

    try:
        # cron mails anything on stdout, so scheduled runs with a log file stay quiet
        logger = setup_logging(args.log_level, args.log_file, cli_mode=not args.log_file)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        result = ManifestProcessor().run(Path(args.destination), Path(args.manifest))
    except OSError as e:
        logger.error(f"Could not process input file '{args.manifest}': {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Backup interrupted by user. Input file not cleared.")
        return 130

    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
