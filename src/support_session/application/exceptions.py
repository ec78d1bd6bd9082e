from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class IdentityUnresolved(AppError):
    """No authenticated participant; the session cannot start."""


class HistoryLoadFailed(AppError):
    pass


class TransportDisconnected(AppError):
    pass


class PublishFailed(AppError):
    """A frame could not be handed to the broker.

    ``text`` is the caller's input so it can be offered for retry.
    """

    def __init__(
        self,
        detail: str = "",
        *,
        text: str | None = None,
        message_id: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.text = text
        self.message_id = message_id


class MalformedInbound(AppError):
    pass


class ConflictError(AppError):
    pass


class SessionAlreadyInitialized(ConflictError):
    pass


class ValidationError(AppError):
    pass
