"""
Worker module.
Contains the job runner that executes jobs behind the gate.
"""

from approval_gate.worker.runner import JobRunner

__all__ = ["JobRunner"]
