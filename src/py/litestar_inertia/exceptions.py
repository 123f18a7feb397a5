"""Litestar-Inertia exception classes."""

__all__ = [
    "HeaderError",
    "InertiaError",
    "ProcessError",
    "RenderError",
    "SerializationError",
    "SsrError",
]


class InertiaError(Exception):
    """Base exception for Litestar-Inertia related errors."""


class SerializationError(InertiaError):
    """Raised when a page or its props cannot be serialized to JSON."""


class HeaderError(InertiaError):
    """Raised when an Inertia request header holds bytes outside printable ASCII."""

    def __init__(self, header: str) -> None:
        super().__init__(f"Header {header!r} contains characters that are not visible ASCII.")
        self.header = header


class SsrError(InertiaError):
    """Raised when the SSR renderer cannot produce a usable result."""

    def __init__(self, message: str, url: "str | None" = None) -> None:
        super().__init__(message)
        self.url = url


class RenderError(InertiaError):
    """Raised when the root template fails to render."""

    def __init__(self, template_name: str, message: str) -> None:
        super().__init__(f"Failed to render root template {template_name!r}: {message}")
        self.template_name = template_name


class ProcessError(InertiaError):
    """Raised when the SSR renderer process fails to start or stop."""

    def __init__(
        self,
        message: str,
        command: "list[str] | None" = None,
        exit_code: "int | None" = None,
        stderr: "str | None" = None,
        stdout: "str | None" = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
