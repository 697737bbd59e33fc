"""Access to the current user's crontab through the ``crontab`` command."""

import logging
import subprocess
from typing import List, Protocol, Sequence


class SchedulerUnavailable(RuntimeError):
    """The periodic job list could not be read or rewritten."""


class JobScheduler(Protocol):
    """Job list operations the schedule translator relies on."""

    def list_jobs(self) -> List[str]: ...

    def set_jobs(self, jobs: Sequence[str]) -> None: ...

    def clear_all_jobs(self) -> None: ...


def _is_missing_crontab(stderr: str) -> bool:
    return "no crontab" in stderr.lower()


class CrontabScheduler:
    """Reads and rewrites the user's crontab."""

    def __init__(self, crontab_bin: str = "crontab", timeout: int = 30):
        self.crontab_bin = crontab_bin
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def _run(self, args: List[str], input_text: str = None) -> subprocess.CompletedProcess:
        cmd = [self.crontab_bin, *args]
        try:
            return subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise SchedulerUnavailable(f"'{self.crontab_bin}' is not installed or not on PATH")
        except (subprocess.TimeoutExpired, subprocess.SubprocessError) as e:
            raise SchedulerUnavailable(f"Running '{' '.join(cmd)}' failed: {e}")

    def list_jobs(self) -> List[str]:
        """Return every line of the current crontab (empty when there is none)."""
        result = self._run(["-l"])

        if result.returncode == 0:
            return result.stdout.splitlines()
        if _is_missing_crontab(result.stderr):
            self.logger.debug("No crontab installed for current user")
            return []
        raise SchedulerUnavailable(f"crontab -l failed: {result.stderr.strip()}")

    def set_jobs(self, jobs: Sequence[str]) -> None:
        """Replace the crontab with the given lines."""
        content = "".join(f"{line}\n" for line in jobs)
        result = self._run(["-"], input_text=content)

        if result.returncode != 0:
            raise SchedulerUnavailable(f"crontab update failed: {result.stderr.strip()}")
        self.logger.debug(f"Crontab rewritten with {len(jobs)} lines")

    def clear_all_jobs(self) -> None:
        """Remove the user's crontab entirely."""
        result = self._run(["-r"])

        if result.returncode != 0 and not _is_missing_crontab(result.stderr):
            raise SchedulerUnavailable(f"crontab -r failed: {result.stderr.strip()}")
