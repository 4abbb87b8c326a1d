"""Errors reported by the pod watcher."""

from __future__ import annotations


class PodWatcherError(Exception):
    """Base class for pod watcher errors."""


class ContextCancelledError(PodWatcherError):
    """The watch was cancelled."""

    def __init__(self) -> None:
        super().__init__("context canceled")


class UnknownContainerError(PodWatcherError):
    """A wait was requested for a container that was never registered."""

    def __init__(self, container: str = "") -> None:
        self.container = container
        super().__init__(f"unknown container: {container}")


class PodTerminatedError(PodWatcherError):
    """The pod terminated before the awaited container state was reached."""

    def __init__(self) -> None:
        super().__init__("pod is terminated")


class FailedContainerError(PodWatcherError):
    """A container failed to start, usually because its image is missing."""

    def __init__(
        self, container: str = "", exit_code: int = 0, reason: str = "", image: str = ""
    ) -> None:
        self.container = container
        self.exit_code = exit_code
        self.reason = reason
        self.image = image
        super().__init__(
            "kubernetes has failed: container failed to start: "
            f"id={container} exitcode={exit_code} reason={reason} image={image}"
        )


class StartTimeoutContainerError(PodWatcherError):
    """A container did not start within the allowed time."""

    def __init__(self, container: str = "", image: str = "") -> None:
        self.container = container
        self.image = image
        super().__init__(
            "kubernetes has failed: container failed to start in timely manner: "
            f"id={container} image={image}"
        )


class OtherContainerError(PodWatcherError):
    """Another container in the same pod failed."""

    def __init__(self, err: BaseException) -> None:
        self.err = err
        super().__init__(f"aborting due to error: {err}")