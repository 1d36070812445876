"""Error types raised by the image and storage layers.

None of these are recovered from where they are raised. The HTTP layer in
``main.py`` catches ``BlackbarError`` and renders the error page.
"""

from __future__ import annotations


class BlackbarError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DecodeError(BlackbarError):
    """The bytes are not an image format Pillow can read."""


class NotFoundError(BlackbarError):
    def __init__(self, key: str):
        super().__init__(f"No image stored under id '{key}'")
        self.key = key


class StorageError(BlackbarError):
    """The blob store backend failed to read or write."""


class UploadError(BlackbarError):
    """The uploaded file stream is missing, empty or too large."""
