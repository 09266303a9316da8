"""Error types for the breathing-exercise session engine.

The sequencer only ever asks "did this succeed"; provider details stay in
the message and the chained cause.
"""


class ExerciseError(Exception):
    """Base exception for all session engine errors."""

    pass


class GenerationFailedError(ExerciseError):
    """Raised when a plan cannot be generated from the user's input.

    The caller must prompt the user to retry; no substitute plan is made.
    """

    def __init__(self, message: str, requires_reauth: bool = False):
        self.message = message
        self.requires_reauth = requires_reauth
        super().__init__(message)


class NarrationError(ExerciseError):
    """Raised when speech could not be synthesized or played to the end."""

    pass


class PlaybackError(ExerciseError):
    """Raised by an audio channel when playback is refused or fails."""

    pass


class InvalidTransitionError(ExerciseError):
    """Raised when a user action is not allowed in the current session state."""

    def __init__(self, action: str, state: str):
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} while session is {state}")
