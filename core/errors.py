"""
errors.py

Exception types raised by the turn dispatcher and its collaborators.
Part of Lantern - Conversational Turn Dispatcher.
"""


class LanternError(Exception):
    """Base class for all dispatcher errors."""


class IdentityUnresolvedError(LanternError):
    """
    Raised when no identity can be established for a turn.

    The descriptor was absent, or it named an identity id that no longer
    exists in the store. The turn must abort: there is no one to answer.
    """


class UnsupportedDescriptorError(LanternError):
    """Raised for an identity descriptor of an unrecognised kind."""


class IdentityNotFoundError(LanternError):
    """Raised by IdentityStore.update_field when the id does not exist."""


class EngineError(LanternError):
    """
    Raised by generation, classification and narration engines.

    Covers provider errors, timeouts and malformed model output alike; the
    dispatcher handles every flavour the same way.
    """
