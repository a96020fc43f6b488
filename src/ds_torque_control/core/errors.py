"""
Exception types raised by the control core.

- ConfigurationError: bad demo/controller files or mismatched dimensions (fatal at startup)
- StreamError / StreamTimeoutError: external reference stream failures (recoverable)
- InfeasibleProblemError: the per-tick QP has no solution (loop applies its policy)
"""


class ConfigurationError(ValueError):
    """Invalid configuration, missing file or dimension mismatch."""


class StreamError(RuntimeError):
    """External reference stream failed or replied with a malformed message."""


class StreamTimeoutError(StreamError):
    """External reference stream did not reply within the allowed time."""

    def __init__(self, address: str, timeout_ms: int):
        super().__init__(f"No reply from {address} within {timeout_ms} ms")
        self.address = address
        self.timeout_ms = timeout_ms


class InfeasibleProblemError(RuntimeError):
    """The quadratic program of the current tick has no feasible solution."""

    def __init__(self, message: str, solver: str = ""):
        super().__init__(f"{message} (solver: {solver})" if solver else message)
        self.solver = solver
