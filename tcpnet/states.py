"""
Connection Lifecycle - The states of a server or client endpoint.

The OS runs the real TCP state machine. What this layer tracks is coarser:
whether we hold a listening socket, a peer socket, or a connect in flight.

Server:
    CLOSED --listen--> LISTENING --accept--> CONNECTED
                           ^                     |
                           +----peer_lost--------+
                           +----drop_peer--------+

Client:
    CLOSED --connect--> CONNECTING --connect_complete--> CONNECTED
                             |                               |
                             +--connect_failed--> CLOSED <---+ peer_lost

Every state accepts "close", which always ends in CLOSED. Transitions only
ever happen inside explicit method calls; there is no background thread.
"""

import logging
from enum import Enum, auto
from typing import Callable


logger = logging.getLogger(__name__)


class Role(Enum):
    """Which side of the connection an endpoint plays."""
    SERVER = auto()
    CLIENT = auto()


class ConnectionState(Enum):
    """Lifecycle states of an endpoint."""

    # No socket
    CLOSED = auto()

    # Server: listening socket open, no peer (the accepting state)
    LISTENING = auto()

    # Client: non-blocking connect issued, completion not yet confirmed
    CONNECTING = auto()

    # A peer socket is usable for I/O
    CONNECTED = auto()

    def has_peer(self) -> bool:
        """Check if a peer socket exists in this state."""
        return self == ConnectionState.CONNECTED

    def is_open(self) -> bool:
        """Check if any socket is held in this state."""
        return self != ConnectionState.CLOSED


class LifecycleStateMachine:
    """
    State machine for one endpoint.

    The role decides where a lost peer leaves us: a server falls back to
    LISTENING and may accept again, a client is simply CLOSED.
    """

    def __init__(self, role: Role):
        self.role = role
        self.state = ConnectionState.CLOSED
        self._transition_callbacks: list[Callable] = []

    def on_transition(self, callback: Callable[[ConnectionState, ConnectionState, str], None]):
        """Register a callback for state transitions."""
        self._transition_callbacks.append(callback)

    def _notify_transition(self, from_state: ConnectionState,
                           to_state: ConnectionState, event: str):
        for callback in self._transition_callbacks:
            callback(from_state, to_state, event)

    def transition(self, event: str) -> bool:
        """
        Apply an event.

        Returns:
            True if the event is valid in the current state
        """
        old_state = self.state
        success = self._process_event(event)

        if not success:
            logger.debug(f"Ignored event {event!r} in state {old_state.name}")
        elif self.state != old_state:
            logger.debug(f"{self.role.name}: {old_state.name} --[{event}]--> {self.state.name}")
            self._notify_transition(old_state, self.state, event)

        return success

    def _process_event(self, event: str) -> bool:
        if event == "close":
            self.state = ConnectionState.CLOSED
            return True

        if self.role == Role.SERVER:
            return self._process_server_event(event)
        return self._process_client_event(event)

    def _process_server_event(self, event: str) -> bool:
        if self.state == ConnectionState.CLOSED:
            if event == "listen":
                self.state = ConnectionState.LISTENING
                return True
            elif event == "drop_peer":
                # client_close() on a server that never started
                return True

        elif self.state == ConnectionState.LISTENING:
            if event == "accept":
                self.state = ConnectionState.CONNECTED
                return True
            elif event == "drop_peer":
                return True

        elif self.state == ConnectionState.CONNECTED:
            if event in ("peer_lost", "drop_peer"):
                self.state = ConnectionState.LISTENING
                return True

        return False

    def _process_client_event(self, event: str) -> bool:
        if self.state == ConnectionState.CLOSED:
            if event == "connect":
                self.state = ConnectionState.CONNECTING
                return True

        elif self.state == ConnectionState.CONNECTING:
            if event == "connect_complete":
                self.state = ConnectionState.CONNECTED
                return True
            elif event == "connect_failed":
                self.state = ConnectionState.CLOSED
                return True

        elif self.state == ConnectionState.CONNECTED:
            if event in ("peer_lost", "drop_peer"):
                self.state = ConnectionState.CLOSED
                return True

        return False

    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    def __str__(self) -> str:
        return f"LifecycleStateMachine(role={self.role.name}, state={self.state.name})"
