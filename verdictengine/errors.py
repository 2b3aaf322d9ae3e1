"""
Error taxonomy for the verdict engine.

- MalformedPath: structurally invalid path descriptor (fatal for that path only)
- UnrecognizedOperator: transform name missing from the registry (recoverable)
- ConfigurationError: missing ceiling, empty or frozen registry (fatal at startup)
- StateTransitionError: aggregator state machine misuse
"""

from typing import Optional


class VerdictEngineError(Exception):
    """Base exception for verdict engine errors."""
    def __init__(self, message: str, path_id: str = ""):
        self.message = message
        self.path_id = path_id
        super().__init__(f"[{path_id}] {message}" if path_id else message)


class MalformedPath(VerdictEngineError):
    """Path descriptor cannot be folded."""
    def __init__(self, message: str, path_id: str = "", step: Optional[int] = None):
        self.step = step
        if step is not None:
            message = f"step {step}: {message}"
        super().__init__(message, path_id)


class UnrecognizedOperator(VerdictEngineError):
    """Operation names a transform the registry does not know."""
    def __init__(self, name: str, path_id: str = ""):
        self.name = name
        super().__init__(f"Unknown operator: {name}", path_id)


class ConfigurationError(VerdictEngineError):
    """Error in classifier configuration."""
    pass


class StateTransitionError(VerdictEngineError):
    """Illegal aggregator state transition."""
    pass
