import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


# --- Probe Outcomes ---
class ProbeOutcome:
    """Result of one liveness probe: Alive, Dead or ProtocolError."""


@dataclass(frozen=True)
class Alive(ProbeOutcome):
    pass


@dataclass(frozen=True)
class Dead(ProbeOutcome):
    pass


@dataclass(frozen=True)
class ProtocolError(ProbeOutcome):
    detail: str = ""


ALIVE = Alive()
DEAD = Dead()


class Status(Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    ONLINE = "online"
    INTERNAL_ERROR = "internal_error"


# --- Errors ---
class PingError(Exception):
    """Base class for every failure on the ping path."""


class AuthError(PingError):
    pass


class ScopeError(PingError):
    pass


class ProbeError(PingError):
    pass


class TransportError(PingError):
    """Malformed HTTP request, rejected by the router before the service runs."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


_ERROR_STATUS = {
    AuthError: Status.UNAUTHORIZED,
    ScopeError: Status.INTERNAL_ERROR,
    ProbeError: Status.INTERNAL_ERROR,
}


def _status_for(error):
    """Maps a PingError to a Status through its class hierarchy."""
    for cls in type(error).__mro__:
        if cls in _ERROR_STATUS:
            return _ERROR_STATUS[cls]
    return Status.INTERNAL_ERROR


# --- Liveness Service ---
class LivenessService:
    """Checks one bot on behalf of one caller.

    The credential store and allow-list are shared read-only between all
    request threads; the probe client is expected to bound its own waiting.
    """

    def __init__(self, credentials, allow_list, probe_client):
        self.credentials = credentials
        self.allow_list = allow_list
        self.probe_client = probe_client

    def check(self, token: str, bot_identity: str) -> Status:
        """Authorizes, scopes, probes and maps the outcome to a Status."""
        try:
            self._authorize(token)
            self._scope(bot_identity)
            status = self._probe(bot_identity)
        except PingError as e:
            status = _status_for(e)
            logger.warning(f"Ping for {bot_identity} rejected ({type(e).__name__}): {e}")
        logger.info(f"Ping for {bot_identity}: {status.name}")
        return status

    def _authorize(self, token):
        if not self.credentials.is_valid(token):
            raise AuthError("unknown access token")

    def _scope(self, bot_identity):
        if not self.allow_list.is_allowed(bot_identity):
            raise ScopeError(f"{bot_identity} is not allow-listed")

    def _probe(self, bot_identity):
        try:
            outcome = self.probe_client.probe(bot_identity)
        except Exception as e:
            logger.exception(f"Probe client failed for {bot_identity}")
            raise ProbeError(str(e)) from e

        if isinstance(outcome, Alive):
            return Status.ONLINE
        if isinstance(outcome, Dead):
            return Status.NOT_FOUND
        if isinstance(outcome, ProtocolError):
            raise ProbeError(outcome.detail or "protocol error")
        raise ProbeError(f"unrecognized probe outcome {outcome!r}")
