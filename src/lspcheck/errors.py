"""Custom exceptions for lspcheck."""


class LspcheckError(Exception):
    """Base exception for all lspcheck errors."""

    pass


class ClassNotFoundError(LspcheckError):
    """Raised when a class cannot be loaded from the indexed sources."""

    def __init__(self, class_name: str, hint: str | None = None):
        self.class_name = class_name
        msg = f"Class not found: {class_name}"
        if hint:
            msg = f"{msg} ({hint})"
        super().__init__(msg)


class InvalidPathError(LspcheckError):
    """Raised when an input path does not exist or has the wrong kind."""

    def __init__(self, path: str, reason: str | None = None):
        self.path = path
        msg = f"Invalid path: {path}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class ConfigNotFoundError(LspcheckError):
    """Raised when an explicitly requested config file doesn't exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Config not found at {path}")


class InvalidConfigError(LspcheckError):
    """Raised when a config file cannot be parsed or has invalid values."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid config {path}: {reason}")


class InvalidSchemaVersionError(LspcheckError):
    """Raised when config has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


class CallDepthExceededError(LspcheckError):
    """Raised when exception-flow analysis follows a call chain deeper than allowed."""

    def __init__(self, chain: list[str], limit: int):
        self.chain = chain
        self.limit = limit
        head = " -> ".join(chain[:3])
        super().__init__(
            f"Call depth limit {limit} exceeded while analyzing {head} -> ..."
        )
