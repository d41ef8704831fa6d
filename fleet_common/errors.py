"""
Error taxonomy for container lifecycle operations.

Every lifecycle failure carries the container name and image being
processed so that it can be diagnosed without inspecting the engine.
"""


class EngineCommandError(RuntimeError):
    """The container engine rejected a command."""

    def __init__(self, message: str, args: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = list(args or [])
        self.stderr = stderr


class LifecycleError(RuntimeError):
    """Base class for failures surfaced by the lifecycle manager."""

    def __init__(
        self,
        message: str,
        container_name: str | None = None,
        image: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.container_name = container_name
        self.image = image

    def __str__(self) -> str:
        context = []
        if self.container_name:
            context.append(f"container={self.container_name}")
        if self.image:
            context.append(f"image={self.image}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class EngineUnavailable(LifecycleError):
    """Transport or connection failure talking to the container engine."""


class PullFailed(LifecycleError):
    """Image fetch failed or its progress stream broke."""


class CreateFailed(LifecycleError):
    pass


class StartFailed(LifecycleError):
    pass


class StopFailed(LifecycleError):
    pass


class RemoveFailed(LifecycleError):
    pass


class BatchError(LifecycleError):
    """
    One or more items of a batch operation failed.

    The batch is attempted in full; failures holds (spec, error) pairs in the
    order the items were submitted.
    """

    def __init__(self, message: str, failures: list):
        super().__init__(message)
        self.failures = failures

    def __str__(self) -> str:
        details = "; ".join(str(error) for _, error in self.failures)
        return f"{self.message}: {details}"
