"""
errors.py – Failure taxonomy for the capture-and-recognition pipeline.

Every failure that can reach the presentation layer is a :class:`TutorError`
carrying a short, actionable ``user_message`` and a ``retryable`` flag so a
front end can tell "try again" apart from "fix your settings".
"""

from __future__ import annotations


class TutorError(Exception):
    """Base class for all pipeline failures."""

    user_message = "Something went wrong. Please try again."
    retryable = True

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message

    @property
    def kind(self) -> str:
        return type(self).__name__


class LocalGateRejection(TutorError):
    """The presence gate found no hand in the frame."""

    user_message = (
        "No hand detected. Position your hand clearly in view and try again."
    )


class FrameUnavailable(TutorError):
    """The camera returned no frame (feed inactive or grab failed)."""

    user_message = "Could not capture a frame. Check that the camera is on."


class TransportFailure(TutorError):
    """Network error or the remote service is unavailable."""

    user_message = "The recognition service is unreachable. Try again shortly."


class AuthFailure(TutorError):
    """The remote service rejected the credential, or none is configured."""

    user_message = "Your API key was rejected. Check your credential in settings."
    retryable = False


class RateLimited(TutorError):
    """The remote service asked us to back off."""

    user_message = "Rate limit reached. Wait a moment before trying again."


class MalformedRemoteResponse(TutorError):
    """The remote reply could not be parsed into a recognition outcome."""

    user_message = "The recognition service sent an unreadable reply. Try again."


class StorageCorruption(TutorError):
    """Local progress storage is unreadable; defaults were restored."""

    user_message = "Saved progress could not be read and was reset."
