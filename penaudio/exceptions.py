"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PenAudioError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(PenAudioError):
    """Raised for issues related to configuration loading or validation."""


class UnsupportedFormatError(PenAudioError):
    """Raised when a source file's extension has no conversion plan."""

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"File type '{extension or '<none>'}' is not supported.")


class ToolFailedError(PenAudioError):
    """Raised when an external codec tool exits with a non-zero status."""

    def __init__(
        self,
        executable: str,
        args: list[str],
        returncode: int | None,
        output: str = "",
        message: str | None = None,
    ):
        self.executable = executable
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(
            message
            or f"'{executable}' exited with code {returncode} "
            f"(arguments: {' '.join(self.args_list)})"
        )


class ToolNotFoundError(ToolFailedError):
    """Raised when a codec executable cannot be started at all."""

    def __init__(self, executable: str, args: list[str]):
        super().__init__(
            executable,
            args,
            None,
            message=f"Executable '{executable}' was not found.",
        )


class ToolTimeoutError(ToolFailedError):
    """Raised when a codec tool runs longer than the configured timeout."""

    def __init__(self, executable: str, args: list[str], timeout: float):
        self.timeout = timeout
        super().__init__(
            executable,
            args,
            None,
            message=f"'{executable}' did not finish within {timeout:g} seconds.",
        )


class ToolOutputMissingError(ToolFailedError):
    """Raised when a tool exits cleanly but did not produce its output file."""

    def __init__(self, executable: str, args: list[str], expected: str):
        self.expected = expected
        super().__init__(
            executable,
            args,
            0,
            message=f"'{executable}' finished but did not create '{expected}'.",
        )


class ArtifactIntegrityError(PenAudioError):
    """Raised when a converted file fails the post-conversion integrity check."""


class CacheIOError(PenAudioError, OSError):
    """Raised when the cache directory cannot be created or written."""


class ConversionCancelledError(PenAudioError):
    """
    Raised when a conversion is aborted through its cancellation event.
    This is a normal user-driven outcome, not a defect.
    """
