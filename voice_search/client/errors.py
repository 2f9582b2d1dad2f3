"""
Exceptions raised by the realtime voice client.

Every exception carries a human-readable message; the session surfaces that
message to the caller instead of provider specific error objects.
"""


class VoiceSessionError(Exception):
    """Base class for client-side session failures."""


class CredentialError(VoiceSessionError):
    """The server could not provide a provider credential."""


class HandshakeError(VoiceSessionError):
    """The transport to the realtime provider could not be established."""


class MicrophoneUnavailableError(VoiceSessionError):
    """Microphone access was denied or no capture device is available."""

    def __init__(self, message: str = "Microphone access was denied or is unavailable"):
        super().__init__(message)
