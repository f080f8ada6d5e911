"""Relay side: delivery pump and process wiring"""

from .app import RelayApp
from .pump import AgentSink, DeliveryPump
from .serializer import KeyedSerializer

__all__ = ["AgentSink", "DeliveryPump", "KeyedSerializer", "RelayApp"]
