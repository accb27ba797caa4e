"""
Error taxonomy shared by the conversation and voice layers.
"""


class ZemenaiError(Exception):
    """Base class for all errors raised by this package."""


class UnknownSession(ZemenaiError):
    """A caller asked for a conversation that does not exist or was deleted."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown session {session_id!r}")


class RemoteTransportFailure(ZemenaiError):
    """The remote model failed while a request or stream was in progress."""


class TurnInProgress(ZemenaiError):
    """A second turn was started for a session whose previous turn has not finished."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} already has a reply in progress")


class SpeechSynthesisError(ZemenaiError):
    """Base class for speech payload problems that route to local fallback."""


class NoAudioData(SpeechSynthesisError):
    """The speech request succeeded but the response carried no audio payload."""


class MalformedAudioPayload(SpeechSynthesisError):
    """The audio payload could not be decoded into 16-bit PCM samples."""
