"""Summaries of Puppet run reports: metrics, slow resources, managed files and logs."""

__version__ = "0.1.0"
