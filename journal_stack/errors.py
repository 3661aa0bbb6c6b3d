from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    AUTH = "auth"
    NOT_FOUND = "not_found"
    QUOTA = "quota"
    PERMISSION = "permission"
    NETWORK = "network"
    STORAGE = "storage"
    UNIDENTIFIABLE = "unidentifiable"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTH: "Invalid API key. Check the vision service credentials.",
    ErrorKind.NOT_FOUND: "Identification service unavailable: the model was not found.",
    ErrorKind.QUOTA: "Request quota exceeded. Please try again later.",
    ErrorKind.PERMISSION: "Permission denied by the identification service.",
    ErrorKind.NETWORK: "Identification failed. Check your connection and try again.",
    ErrorKind.STORAGE: "Could not save to this device. Check available storage.",
    ErrorKind.UNIDENTIFIABLE: "Could not identify a plant, flower or insect in this image.",
}


class JournalError(Exception):
    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, detail: str = "", *, kind: ErrorKind | None = None):
        if kind is not None:
            self.kind = kind
        self.detail = detail
        super().__init__(detail or self.user_message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


class StorageError(JournalError):
    kind = ErrorKind.STORAGE


class IdentificationError(JournalError):
    """Vision call failed; ``kind`` says why."""


class UnidentifiableSubject(JournalError):
    """The reply was valid but named no usable subject."""

    kind = ErrorKind.UNIDENTIFIABLE


class ParseDegraded(JournalError):
    """Reply text did not parse cleanly; raw-text fallback was used."""


class AttemptCancelled(Exception):
    def __init__(self, image_path: str | None = None):
        self.image_path = image_path
        super().__init__("attempt cancelled")
