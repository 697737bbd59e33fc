"""
manifest-backup: copy a list of files and folders into a backup folder on a cron schedule.

The backup pass reads a manifest of absolute paths, copies each into the backup
folder and clears the manifest once every copy has succeeded. The setup entry
point installs a crontab job that repeats the pass daily, weekly, monthly or
every N minutes.
"""

__version__ = "0.1.0"
