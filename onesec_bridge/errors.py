from __future__ import annotations


class BridgeError(Exception):
    """Raised when a bridge flow cannot be set up or continued."""


class ConfigError(BridgeError):
    """Unknown token, chain or deployment, or missing settings."""


class PlanStructureError(BridgeError):
    """A plan was assembled in a way that breaks its ownership rules."""


class ResumeError(BridgeError):
    """A transfer could not be resumed from its identifier."""


class RemoteCallError(BridgeError):
    """Transport-level failure talking to the settlement canister or a ledger.

    Steps treat this as transient and keep polling.
    """


class RemoteRejection(BridgeError):
    """The remote side answered with an explicit error."""
