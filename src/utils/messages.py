from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user logs out
    """

    bubble = True


class NewReceiptMessage(Message):
    """
    Fired when a sale has been committed.
    Listened to by the receipt history and the register (stock changed).
    """

    bubble = True


class CatalogChangedMessage(Message):
    """Fired after products were created or updated."""

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
