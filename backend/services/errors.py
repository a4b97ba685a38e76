"""Failure kinds surfaced to the UI layer.

Every call that reaches an external service or a platform capability converts
its failures into one of these before anything touches application state.
"""


class LinguistError(Exception):
    """Base class; carries the message shown to the user."""

    status_code = 500
    user_message = "Something went wrong. Please try again."

    def __init__(self, message=None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message

    def to_dict(self):
        return {
            "success": False,
            "error": self.message,
            "kind": type(self).__name__,
        }


class InvalidResponse(LinguistError):
    """The model replied but its payload does not fit the WordDefinition schema."""

    status_code = 422
    user_message = "Invalid response format from AI mentor. Please try a different query."


class RequestFailed(LinguistError):
    """Network or HTTP-level failure while calling a service."""

    status_code = 502
    user_message = "Search failed. The AI might be busy or the query was unclear."


class UnsupportedPlatform(LinguistError):
    status_code = 501
    user_message = "This feature is not supported on this machine."


class NoAudioPayload(LinguistError):
    status_code = 502
    user_message = "Failed to generate voice. Please try again."


class AudioDecodeError(LinguistError):
    status_code = 502
    user_message = "The generated audio could not be played."


class RecognitionError(LinguistError):
    """Speech recognition failed; `code` mirrors the browser error codes."""

    status_code = 502

    def __init__(self, code, message=None):
        super().__init__(message or f"Error: {code}")
        self.code = code

    def to_dict(self):
        data = super().to_dict()
        data["code"] = self.code
        return data
