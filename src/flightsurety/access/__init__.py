"""Operational gate and access control."""

from flightsurety.access.operational_gate import GateState, OperationalGate

__all__ = [
    "GateState",
    "OperationalGate",
]
