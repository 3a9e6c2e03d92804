"""
Exceptions raised while composing outlines.

Every failure is fatal: the pipeline stops at the first error and returns
nothing. Each error carries the dotted config path it refers to.
"""


class OutlineError(Exception):
    """Base exception for outline composition errors."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


class ValidationError(OutlineError):
    """Config value has the wrong type, shape, or an unknown key."""
    pass


class GeometryError(OutlineError):
    """Config is well formed but describes impossible geometry."""
    pass
