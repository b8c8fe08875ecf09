"""
Reconciler module.
Contains the cleanup passes and the periodic reconciler process.
"""

from approval_gate.reconciler.cleaner import Cleaner
from approval_gate.reconciler.main import Reconciler, run

__all__ = ["Cleaner", "Reconciler", "run"]
