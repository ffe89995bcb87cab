class BackendError(Exception):
    """A storage read/write or remote procedure call failed."""


class AuthError(Exception):
    """Credential problem; the message is safe to show to the user."""


class PrinterCancelled(Exception):
    """The user dismissed the printer pairing prompt."""
