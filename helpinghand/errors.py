"""Exceptions raised by the household service."""


class Unauthenticated(Exception):
    """Raised when an operation needs a signed-in identity and there is none."""


class DocumentNotFound(Exception):
    """Raised when updating a remote document that does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Document not found: {path}")
        self.path = path


class RecipeLookupError(Exception):
    """Raised when the recipe API cannot be reached or returns an error."""
