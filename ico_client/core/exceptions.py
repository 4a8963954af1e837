# ico_client/core/exceptions.py

from typing import Optional


class IcoClientException(Exception):
    """Base class for custom exceptions in this application."""
    pass


class ConfigError(IcoClientException):
    """Missing or invalid configuration."""
    pass


class QueryError(IcoClientException):
    """A read query against the ledger failed (transport, RPC or decode error)."""
    pass


class DerivationExhausted(IcoClientException):
    """No bump in the bounded search range produced an off-curve address."""

    def __init__(self, seeds_hex: str, program_id: str):
        super().__init__(f"No valid bump found for seeds [{seeds_hex}] under program {program_id}")
        self.seeds_hex = seeds_hex
        self.program_id = program_id


class SubmissionError(IcoClientException):
    """The signer, the network or the program rejected a transaction."""

    def __init__(self, message: str, error_type: str = "SendError",
                 signature: Optional[str] = None, raw_error: Optional[object] = None):
        super().__init__(message)
        self.error_type = error_type
        self.signature = signature
        self.raw_error = raw_error


class ActionNotPermitted(IcoClientException):
    """The current session role does not allow the requested action."""
    pass
