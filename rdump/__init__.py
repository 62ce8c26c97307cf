"""rdump: sequence snapshot backups and replicate ZFS volume trees."""

__version__ = "0.1.0"
