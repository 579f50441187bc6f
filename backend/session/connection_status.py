"""
Connection status tracking for scheduling sessions.

Connection lifecycle is tracked separately from the state machine:
connection_status: DOWN | CONNECTING | UP

This is pure data owned by SessionGateway, not by orchestrator state.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Realtime transport lifecycle status.

    Separate from and independent of orchestrator State enum. Gateway
    commands emitted while not UP are buffered by the runtime.
    """
    DOWN = "DOWN"              # Not connected
    CONNECTING = "CONNECTING"  # Transport opening
    UP = "UP"                  # Transport open
