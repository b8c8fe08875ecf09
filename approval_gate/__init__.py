"""
Approval Gate

Defers job submissions under operator-chosen approval keys until they are
released, either explicitly or once a per-job-type concurrency budget allows it.
"""

__version__ = "1.0.0"
