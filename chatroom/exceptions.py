"""
Custom Exception Classes

This module defines custom exceptions for the chatroom application
to provide better error handling and debugging information.
"""

from typing import Optional


class ChatroomBaseException(Exception):
    """Base exception for the chatroom application."""

    pass


class ConfigurationError(ChatroomBaseException):
    """Raised for configuration problems."""

    pass


class StorageError(ChatroomBaseException):
    """Raised when the persisted document cannot be read or written."""

    def __init__(self, path: str, original_error: Optional[Exception] = None, message: Optional[str] = None):
        self.path = path
        self.original_error = original_error
        details = f"Storage failure for '{path}'"
        if original_error is not None:
            details = f"{details}: {original_error}"
        if message:
            super().__init__(f"{message} - Details: {details}")
        else:
            super().__init__(details)


class DuplicateMessageError(StorageError):
    """Raised when a message id is already present in the log."""

    def __init__(self, path: str, message_id: str):
        self.message_id = message_id
        super().__init__(path, message=f"Message id '{message_id}' already exists")


class AIServiceError(ChatroomBaseException):
    """Raised when the reasoning service cannot be reached or keeps failing."""

    pass


class AIResponseError(ChatroomBaseException):
    """Raised for errors in processing AI responses."""

    def __init__(self, message: str, raw_content: Optional[str] = None):
        self.raw_content = raw_content
        super().__init__(message)
