class MetaEvalError(Exception):
    """Base exception for metaeval."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class OracleInvocationError(MetaEvalError):
    """The oracle failed (network, timeout, provider error) during one call."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(message=f"Oracle call failed during '{stage}': {message}")


class ArgumentValidationError(MetaEvalError):
    def __init__(self, argument: str, message: str | None = None) -> None:
        self.argument = argument
        super().__init__(message=message or f"Argument '{argument}' must not be empty")


class EvaluationError(MetaEvalError):
    def __init__(self, message: str) -> None:
        super().__init__(message=message)


class OperationCancelledError(MetaEvalError):
    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(message=f"Operation '{operation}' was cancelled before it started")
