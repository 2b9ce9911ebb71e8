"""Error taxonomy for the risk analytics engine.

Computational functions raise ``InvalidInput`` / ``InvalidConfiguration``
immediately instead of producing degenerate output.  The service layer raises
``NotFound`` for unresolvable references and wraps collaborator failures in
``DependencyFailure`` so callers can decide on a fallback.
"""

from __future__ import annotations


class RiskEngineError(Exception):
    """Base class for all risk engine errors."""


class NotFound(RiskEngineError, LookupError):
    """A portfolio or position reference could not be resolved."""


class InvalidInput(RiskEngineError, ValueError):
    """Input data is unusable (series too short, non-finite values, ...)."""


class InvalidConfiguration(RiskEngineError, ValueError):
    """Risk limits or other configuration values are outside a sane domain."""


class DependencyFailure(RiskEngineError):
    """A collaborator (market data, store, ...) call failed."""

    def __init__(self, collaborator: str, message: str) -> None:
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
