"""Exceptions raised by the identity store."""


class NoSuchIdentity(RuntimeError):
    """Identity does not exist."""


class DuplicateIdentityError(RuntimeError):
    """An identity with the same id or slug already exists."""


class PasscodeInvalid(RuntimeError):
    """Passcode is wrong, expired, or already used."""


class NoSuchPublicKey(RuntimeError):
    """No public key is registered under the requested id."""
