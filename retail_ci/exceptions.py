"""Exceptions related to retail-ci."""

__all__ = [
    "RetailCIException",
    "InputException",
    "UnsupportedEventError",
    "ConfigNotFoundError",
    "GitException",
    "PipelineFailedError",
]


class RetailCIException(Exception):
    """Generic base exception used for this library."""


class InputException(RetailCIException):
    """Raised when the input files or values are not formatted as expected."""


class UnsupportedEventError(InputException):
    """Raised when a trigger event kind has no tagging rule."""

    def __init__(self, event: str) -> None:
        super().__init__(f"Unsupported trigger event '{event}'")
        self.event = event


class ConfigNotFoundError(RetailCIException):
    """Raised when a service chart values file or image entry cannot be located."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"Configuration not found for service '{service}': {message}")
        self.service = service
        self.message = message


class GitException(RetailCIException):
    """Raised when there is a failure running a git operation."""


class PipelineFailedError(RetailCIException):
    """Raised when one or more services failed during a pipeline run."""

    def __init__(self, errors: dict[str, RetailCIException]) -> None:
        details = "; ".join(f"{service}: {err}" for service, err in errors.items())
        super().__init__(f"Pipeline failed for {len(errors)} service(s): {details}")
        self.errors = errors
