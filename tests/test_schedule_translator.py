import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from manifest_backup.config import ScheduleTimes  # noqa: E402
from manifest_backup.crontab import SchedulerUnavailable  # noqa: E402
from manifest_backup.schedule_translator import (  # noqa: E402
    JOB_MARKER,
    Cadence,
    InvalidCadence,
    ScheduleTranslator,
    build_runner_command,
    translate,
)

DEST = Path("/tmp/bk")
MANIFEST = Path("/tmp/list.txt")


class FakeScheduler:
    def __init__(self, jobs=None, available=True):
        self.jobs = list(jobs or [])
        self.available = available
        self.set_calls = 0
        self.cleared = False

    def list_jobs(self):
        if not self.available:
            raise SchedulerUnavailable("crontab missing")
        return list(self.jobs)

    def set_jobs(self, jobs):
        if not self.available:
            raise SchedulerUnavailable("crontab missing")
        self.set_calls += 1
        self.jobs = list(jobs)

    def clear_all_jobs(self):
        self.cleared = True
        self.jobs = []


def fixed_command(descriptor):
    return f"run-backup {descriptor.destination} {descriptor.manifest_path}"


@pytest.mark.parametrize(
    "token, cadence, expression",
    [
        ("d", Cadence.DAILY, "0 2 * * *"),
        ("w", Cadence.WEEKLY, "0 2 * * 0"),
        ("m", Cadence.MONTHLY, "0 2 1 * *"),
    ],
)
def test_translate_named_cadences(token: str, cadence: Cadence, expression: str) -> None:
    descriptor = translate(token, DEST, MANIFEST)

    assert descriptor.cadence is cadence
    assert descriptor.cron_expression == expression
    assert descriptor == translate(token, DEST, MANIFEST)


def test_named_cadences_are_distinct() -> None:
    expressions = {translate(token, DEST, MANIFEST).cron_expression for token in "dwm"}

    assert len(expressions) == 3


def test_translate_minutes() -> None:
    descriptor = translate("15", DEST, MANIFEST)

    assert descriptor.cadence is Cadence.EVERY_N_MINUTES
    assert descriptor.minutes == 15
    assert descriptor.cron_expression == "*/15 * * * *"
    assert descriptor.destination == DEST
    assert descriptor.manifest_path == MANIFEST


def test_translate_whole_hours() -> None:
    assert translate("120", DEST, MANIFEST).cron_expression == "0 */2 * * *"


@pytest.mark.parametrize("token", ["xyz", "", "D", "-5", "1.5", "daily", "0", "00", "90", "1440"])
def test_translate_rejects_invalid_tokens(token: str) -> None:
    with pytest.raises(InvalidCadence):
        translate(token, DEST, MANIFEST)


def test_translate_uses_configured_times() -> None:
    times = ScheduleTimes(hour=23, minute=30, weekday=5, day_of_month=15)

    assert translate("d", DEST, MANIFEST, times).cron_expression == "30 23 * * *"
    assert translate("w", DEST, MANIFEST, times).cron_expression == "30 23 * * 5"
    assert translate("m", DEST, MANIFEST, times).cron_expression == "30 23 15 * *"


def test_install_appends_without_touching_existing_jobs() -> None:
    existing = ["MAILTO=me@example.com", "5 4 * * * /usr/bin/other-job"]
    scheduler = FakeScheduler(existing)
    translator = ScheduleTranslator(scheduler, fixed_command)

    line = translator.install(translate("d", DEST, MANIFEST))

    assert scheduler.jobs[:2] == existing
    assert scheduler.jobs[2] == line
    assert line == f"0 2 * * * run-backup /tmp/bk /tmp/list.txt {JOB_MARKER}"


def test_install_twice_keeps_both_jobs() -> None:
    scheduler = FakeScheduler()
    translator = ScheduleTranslator(scheduler, fixed_command)

    translator.install(translate("d", DEST, MANIFEST))
    translator.install(translate("30", DEST, MANIFEST))

    assert len(scheduler.jobs) == 2


def test_remove_installed_only_removes_tagged_jobs() -> None:
    foreign = "5 4 * * * /usr/bin/other-job"
    scheduler = FakeScheduler([foreign])
    translator = ScheduleTranslator(scheduler, fixed_command)
    translator.install(translate("w", DEST, MANIFEST))
    translator.install(translate("m", DEST, MANIFEST))

    removed = translator.remove_installed()

    assert removed == 2
    assert scheduler.jobs == [foreign]
    assert not scheduler.cleared


def test_remove_installed_without_jobs_does_not_rewrite() -> None:
    scheduler = FakeScheduler(["5 4 * * * /usr/bin/other-job"])

    assert ScheduleTranslator(scheduler, fixed_command).remove_installed() == 0
    assert scheduler.set_calls == 0


def test_remove_all_clears_every_job() -> None:
    scheduler = FakeScheduler(["5 4 * * * /usr/bin/other-job"])

    ScheduleTranslator(scheduler, fixed_command).remove_all()

    assert scheduler.cleared
    assert scheduler.jobs == []


def test_install_propagates_scheduler_unavailable() -> None:
    translator = ScheduleTranslator(FakeScheduler(available=False), fixed_command)

    with pytest.raises(SchedulerUnavailable):
        translator.install(translate("d", DEST, MANIFEST))


def test_next_run_time() -> None:
    now = datetime(2024, 11, 30, 10, 7)

    daily = translate("d", DEST, MANIFEST)
    minutes = translate("15", DEST, MANIFEST)

    assert ScheduleTranslator.next_run_time(daily, now) == datetime(2024, 12, 1, 2, 0)
    assert ScheduleTranslator.next_run_time(minutes, now) == datetime(2024, 11, 30, 10, 15)


def test_build_runner_command_quotes_paths() -> None:
    descriptor = translate("d", Path("/tmp/my backups"), MANIFEST)

    command = build_runner_command(descriptor, log_level="DEBUG", log_file="/var/log/bk.log")

    assert "-m manifest_backup.runner" in command
    assert "'/tmp/my backups' /tmp/list.txt" in command
    assert command.endswith("--log-level DEBUG --log-file /var/log/bk.log")


def test_job_line_escapes_percent_signs() -> None:
    translator = ScheduleTranslator(FakeScheduler())
    descriptor = translate("d", Path("/backups/100%"), Path("/x/list%d.txt"))

    line = translator.job_line(descriptor)

    command = line[len("0 2 * * * "):-len(JOB_MARKER)]
    assert "/backups/100\\% /x/list\\%d.txt" in command
    assert "%" not in command.replace("\\%", "")
    assert line.endswith(JOB_MARKER)
