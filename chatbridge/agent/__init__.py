"""Agent side: source observer/actuator wiring"""

from .bridge import AgentBridge
from .echo_tracker import EchoTracker
from .types import EventCallback, SourceActuator, SourceEvent, SourceObserver

__all__ = [
    "AgentBridge",
    "EchoTracker",
    "EventCallback",
    "SourceActuator",
    "SourceEvent",
    "SourceObserver",
]
