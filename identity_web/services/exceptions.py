"""Provides exceptions occurring with external services."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""


class UnknownSession(RuntimeError):
    """Failed to locate a session in the session store."""


class InvalidToken(ValueError):
    """A session cookie is malformed, expired, or forged."""


class SessionUnavailable(SessionCreationFailed):
    """The session store could not be reached."""


class MailDeliveryFailed(RuntimeError):
    """A message could not be handed to the mail server."""
