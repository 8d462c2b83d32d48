"""Signals sent by the session service."""

from blinker import Namespace

_signals = Namespace()

identity_created = _signals.signal('identity-created')
"""Sent with ``details={'identity': identity}`` after a successful join."""
