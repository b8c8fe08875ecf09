"""
Broker module.
Contains the broker interface and its Redis implementation.
"""

from approval_gate.broker.base import Broker
from approval_gate.broker.redis_broker import RedisBroker

__all__ = ["Broker", "RedisBroker"]
