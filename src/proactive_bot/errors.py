# src/proactive_bot/errors.py


class ProactiveBotError(Exception):
    """Base class for errors raised by the proactive bot."""


class ReferenceNotFoundError(ProactiveBotError):
    """No conversation reference has been saved yet."""


class CorruptReferenceError(ProactiveBotError):
    """The stored conversation reference could not be read back."""


class DeliveryFailedError(ProactiveBotError):
    """The referenced conversation could not be continued."""


class StorageIOError(ProactiveBotError):
    """Reading or writing the reference file failed."""
