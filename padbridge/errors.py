"""Exception hierarchy for padbridge."""

from __future__ import annotations

from typing import List, Optional


class BridgeError(Exception):
    """Base exception for all padbridge errors."""


class ConfigError(BridgeError, ValueError):
    """The mappings file does not describe a valid binding table.

    ``errors`` holds every problem found, as ``"/path: message"`` strings.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid configuration")


class DispatchError(BridgeError):
    """A command intent could not be delivered to OBS."""


class ObsUnreachable(DispatchError):
    """No live obs-websocket connection."""


class RequestFailed(DispatchError):
    """OBS answered a request with a failed status."""

    def __init__(self, request_type: str, code: Optional[int], comment: Optional[str] = None):
        self.request_type = request_type
        self.code = code
        self.comment = comment
        msg = f"{request_type} failed (code={code})"
        if comment:
            msg += f": {comment}"
        super().__init__(msg)


class AuthenticationFailed(BridgeError):
    """obs-websocket closed the connection during identification."""


class DeviceNotFound(BridgeError):
    """No MIDI input port matched the requested name."""


class TransportDisconnected(BridgeError):
    """The MIDI transport went away; the pipeline instance is finished."""
