"""Translate cadence tokens into cron schedules and manage the installed jobs."""

import logging
import re
import shlex
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from croniter import croniter

from .config import ScheduleTimes
from .crontab import JobScheduler

JOB_MARKER = "# manifest-backup"
RUNNER_MODULE = "manifest_backup.runner"

_MINUTES_PATTERN = re.compile(r"^[0-9]+$")


class InvalidCadence(ValueError):
    """The cadence token does not name a supported backup frequency."""


class Cadence(Enum):
    """Backup frequency selected by a cadence token."""

    DAILY = "d"
    WEEKLY = "w"
    MONTHLY = "m"
    EVERY_N_MINUTES = "minutes"


class ScheduleDescriptor:
    """A translated cadence plus the arguments the scheduled run needs."""

    def __init__(
        self,
        cadence: Cadence,
        destination: Path,
        manifest_path: Path,
        minutes: Optional[int] = None,
        times: Optional[ScheduleTimes] = None,
    ):
        self.cadence = cadence
        self.destination = Path(destination)
        self.manifest_path = Path(manifest_path)
        self.minutes = minutes
        self.times = times or ScheduleTimes()

    @property
    def cron_expression(self) -> str:
        """Five-field cron expression for this cadence."""
        t = self.times
        if self.cadence is Cadence.DAILY:
            return f"{t.minute} {t.hour} * * *"
        if self.cadence is Cadence.WEEKLY:
            return f"{t.minute} {t.hour} * * {t.weekday}"
        if self.cadence is Cadence.MONTHLY:
            return f"{t.minute} {t.hour} {t.day_of_month} * *"

        minutes = self.minutes
        if 0 < minutes < 60:
            return f"*/{minutes} * * * *"
        if minutes % 60 == 0 and 0 < minutes // 60 < 24:
            return f"0 */{minutes // 60} * * *"
        raise InvalidCadence(
            f"An interval of {minutes} minutes cannot be expressed as a cron schedule. "
            "Use 1-59 minutes or a whole number of hours below a day."
        )

    def describe(self) -> str:
        if self.cadence is Cadence.EVERY_N_MINUTES:
            return f"every {self.minutes} minutes"
        return self.cadence.name.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScheduleDescriptor):
            return NotImplemented
        return (
            self.cadence,
            self.minutes,
            self.destination,
            self.manifest_path,
            self.times,
        ) == (other.cadence, other.minutes, other.destination, other.manifest_path, other.times)

    def __hash__(self) -> int:
        return hash((self.cadence, self.minutes, self.destination, self.manifest_path))

    def __repr__(self) -> str:
        return (
            f"ScheduleDescriptor({self.describe()!r}, cron={self.cron_expression!r}, "
            f"destination={str(self.destination)!r}, manifest={str(self.manifest_path)!r})"
        )


def translate(
    token: str,
    destination: Path,
    manifest_path: Path,
    times: Optional[ScheduleTimes] = None,
) -> ScheduleDescriptor:
    """
    Map a cadence token to a schedule descriptor.

    Args:
        token: ``d``, ``w``, ``m`` or a positive number of minutes
        destination: Backup folder passed to the scheduled run
        manifest_path: Manifest passed to the scheduled run
        times: Fixed times for the daily/weekly/monthly cadences

    Returns:
        ScheduleDescriptor for the token

    Raises:
        InvalidCadence: The token is unknown, zero, or not expressible in cron
    """
    token = (token or "").strip()

    if token in ("d", "w", "m"):
        descriptor = ScheduleDescriptor(Cadence(token), destination, manifest_path, times=times)
    elif _MINUTES_PATTERN.match(token):
        minutes = int(token)
        if minutes == 0:
            raise InvalidCadence("Interval of 0 minutes is not allowed.")
        descriptor = ScheduleDescriptor(
            Cadence.EVERY_N_MINUTES, destination, manifest_path, minutes=minutes, times=times
        )
    else:
        raise InvalidCadence(
            f"Invalid interval '{token}'. Use 'd', 'w', 'm', or a number (#) for minutes."
        )

    expression = descriptor.cron_expression
    if not croniter.is_valid(expression):
        raise InvalidCadence(f"Generated cron schedule '{expression}' is not valid")
    return descriptor


def build_runner_command(
    descriptor: ScheduleDescriptor,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> str:
    """Shell command that runs one backup pass for the descriptor."""
    args = [
        sys.executable,
        "-m",
        RUNNER_MODULE,
        str(descriptor.destination),
        str(descriptor.manifest_path),
        "--log-level",
        log_level,
    ]
    if log_file:
        args.extend(["--log-file", log_file])
    return shlex.join(args)


class ScheduleTranslator:
    """Installs and removes backup jobs through an external job scheduler."""

    def __init__(
        self,
        scheduler: JobScheduler,
        command_builder: Callable[[ScheduleDescriptor], str] = build_runner_command,
    ):
        self.scheduler = scheduler
        self.command_builder = command_builder
        self.logger = logging.getLogger(__name__)

    def job_line(self, descriptor: ScheduleDescriptor) -> str:
        """Full crontab line for the descriptor, tagged with the job marker."""
        # cron turns an unescaped % in the command into a newline
        command = self.command_builder(descriptor).replace("%", "\\%")
        return f"{descriptor.cron_expression} {command} {JOB_MARKER}"

    def install(self, descriptor: ScheduleDescriptor) -> str:
        """
        Append a job for the descriptor, keeping every existing job.

        Returns:
            The crontab line that was added
        """
        line = self.job_line(descriptor)
        jobs = self.scheduler.list_jobs()
        self.scheduler.set_jobs([*jobs, line])
        self.logger.info(f"Cron job set up to run {descriptor.describe()}: {line}")
        return line

    def remove_installed(self) -> int:
        """Remove only the jobs carrying the marker; returns how many were removed."""
        jobs = self.scheduler.list_jobs()
        remaining: List[str] = [job for job in jobs if not job.rstrip().endswith(JOB_MARKER)]
        removed = len(jobs) - len(remaining)

        if removed:
            self.scheduler.set_jobs(remaining)
        self.logger.info(f"Removed {removed} backup cron jobs")
        return removed

    def remove_all(self) -> None:
        """Remove every cron job of the current user, including unrelated ones."""
        self.scheduler.clear_all_jobs()
        self.logger.warning("All cron jobs terminated.")

    @staticmethod
    def next_run_time(descriptor: ScheduleDescriptor, current_time: datetime = None) -> datetime:
        """
        Get the next time the descriptor's job will fire.

        Args:
            descriptor: Translated schedule
            current_time: Current time (defaults to now)

        Returns:
            Next scheduled run time
        """
        if current_time is None:
            current_time = datetime.now()
        return croniter(descriptor.cron_expression, current_time).get_next(datetime)
