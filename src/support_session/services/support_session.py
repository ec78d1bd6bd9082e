"""Support chat session: assistant/human mode machine over one broker channel."""
from __future__ import annotations

import logging
from functools import partial
from typing import Callable

from support_session.application.dto.identity import Identity
from support_session.application.dto.mail import MailResult, SupportEmailDraft
from support_session.application.dto.wire import (
    escalation_payload,
    outbound_payload,
    parse_wire_message,
)
from support_session.application.exceptions import (
    AppError,
    ConflictError,
    HistoryLoadFailed,
    IdentityUnresolved,
    MalformedInbound,
    PublishFailed,
    SessionAlreadyInitialized,
    ValidationError,
)
from support_session.application.ports.clock import Clock, SystemClock
from support_session.application.ports.identity import IdentityResolver
from support_session.application.ports.mail import SupportMailSender
from support_session.config import settings
from support_session.domain.entities.message import Message
from support_session.domain.entities.session_state import SessionState
from support_session.domain.events.session_events import (
    AwaitingReplyChanged,
    ConnectionStatusChanged,
    MessageAppended,
    ModeChanged,
    SessionEvent,
)
from support_session.domain.value_objects.enums import (
    ConnectionStatus,
    SenderKind,
    SessionMode,
)
from support_session.domain.value_objects.ids import local_message_id
from support_session.infrastructure.bus.channel import (
    ChannelConnection,
    OnConnectCallback,
    OnStatusCallback,
    redis_channel,
)
from support_session.infrastructure.bus.serializer import decode_payload
from support_session.services import canned_text
from support_session.services.history_loader import HistoryLoader
from support_session.services.knowledge_base import KnowledgeBase

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent], None]
ChannelFactory = Callable[..., ChannelConnection]


class SupportSession:
    """Owns the transcript and mode of one support conversation.

    All mutations happen synchronously on the event loop, between awaits, so
    inbound frames and user actions never interleave mid-update. Callbacks
    carry the epoch they were created under and are ignored once
    ``initialize``/``teardown`` moved it on.
    """

    def __init__(
        self,
        history: HistoryLoader,
        *,
        knowledge_base: KnowledgeBase | None = None,
        channel_factory: ChannelFactory = redis_channel,
        mailer: SupportMailSender | None = None,
        clock: Clock | None = None,
        counterpart_id: int = settings.SUPPORT_COUNTERPART_ID,
        counterpart_address: str = settings.COUNTERPART_CHANNEL,
        suggestion_threshold: int = settings.HUMAN_SUGGESTION_THRESHOLD,
    ) -> None:
        self._history = history
        self._kb = knowledge_base or KnowledgeBase()
        self._channel_factory = channel_factory
        self._mailer = mailer
        self._clock = clock or SystemClock()
        self._counterpart_id = counterpart_id
        self._counterpart_address = counterpart_address
        self._suggestion_threshold = suggestion_threshold

        self._state = SessionState(suggestion_threshold=suggestion_threshold)
        self._identity: Identity | None = None
        self._channel: ChannelConnection | None = None
        self._inbox: str | None = None
        self._listeners: list[SessionListener] = []
        self._epoch = 0
        self._initialized = False

    # -- read side -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> SessionMode:
        return self._state.mode

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._state.connection_status

    @property
    def transcript(self) -> tuple[Message, ...]:
        return tuple(self._state.transcript)

    @property
    def channel(self) -> ChannelConnection | None:
        return self._channel

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a state-change listener; returns its unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- lifecycle -------------------------------------------------------

    async def initialize_with(self, resolver: IdentityResolver) -> None:
        try:
            identity: Identity | IdentityUnresolved = await resolver.resolve()
        except IdentityUnresolved as exc:
            identity = exc
        await self.initialize(identity)

    async def initialize(self, identity: Identity | IdentityUnresolved) -> None:
        if self._initialized:
            raise SessionAlreadyInitialized("session already initialized; call teardown() first")

        self._epoch += 1
        epoch = self._epoch
        self._state = SessionState(suggestion_threshold=self._suggestion_threshold)

        if isinstance(identity, IdentityUnresolved):
            logger.warning("Support session not started: %s", identity.detail)
            self._set_status(ConnectionStatus.ERROR)
            raise identity

        self._initialized = True
        self._identity = identity
        self._state.participant_id = identity.participant_id
        self._append(self._local_message(canned_text.WELCOME, SenderKind.BOT))

        await self._hydrate(identity.participant_id)
        if epoch != self._epoch:
            return

        self._inbox = settings.inbox_channel(identity.participant_id)
        on_connect: OnConnectCallback = partial(self._on_channel_connect, epoch)
        on_status: OnStatusCallback = partial(self._on_channel_status, epoch)
        self._channel = self._channel_factory(on_connect=on_connect, on_status=on_status)
        await self._channel.subscribe(self._inbox, partial(self._on_frame, epoch))
        await self._channel.connect()
        logger.info(
            "Support session started for participant=%s inbox=%s",
            identity.participant_id, self._inbox,
        )

    async def teardown(self) -> None:
        """Release the channel; safe to call repeatedly or before initialize."""
        self._epoch += 1
        self._initialized = False
        self._listeners.clear()
        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.disconnect()
            logger.info("Support session torn down for participant=%s", self._state.participant_id)
        if self._state.connection_status != ConnectionStatus.ERROR:
            self._state.connection_status = ConnectionStatus.DISCONNECTED

    async def give_up(self) -> None:
        """Stop reconnecting; the session reports ERROR until torn down."""
        if self._channel is not None:
            await self._channel.give_up()

    # -- user actions ----------------------------------------------------

    async def send(self, text: str) -> Message | None:
        """Post user input; blank input is ignored and returns None."""
        text = (text or "").strip()
        if not text:
            return None
        participant_id = self._require_participant()

        if self._state.mode == SessionMode.ASSISTANT:
            message = self._local_message(
                text, SenderKind.USER, sender_id=participant_id,
            )
            self._append(message)
            self._append(self._local_message(self._kb.respond(text), SenderKind.BOT))
            return message

        if not self._is_connected():
            raise PublishFailed("support channel is not connected", text=text)
        message = self._local_message(
            text,
            SenderKind.USER,
            sender_id=participant_id,
            receiver_id=self._counterpart_id,
        )
        self._append(message)
        await self._publish_message(message)
        self._set_awaiting(True)
        return message

    async def resend(self, message_id: str) -> None:
        """Retry a message whose publish failed after it was shown."""
        message = self._state.undelivered.get(message_id)
        if message is None:
            raise ValidationError(f"no undelivered message {message_id}")
        if not self._is_connected():
            raise PublishFailed(
                "support channel is not connected", text=message.content, message_id=message.id,
            )
        await self._publish_message(message)
        self._set_awaiting(True)

    async def request_human(self) -> bool:
        """Hand the conversation to a human agent.

        Returns False when already in human mode. The escalation notice is
        published now when connected, otherwise on the next connect.
        """
        self._require_participant()
        if self._state.is_human:
            return False

        self._state.mode = SessionMode.HUMAN
        self._notify(ModeChanged(SessionMode.HUMAN))
        self._append(
            self._local_message(
                canned_text.HANDOFF,
                SenderKind.ADMIN,
                sender_id=self._counterpart_id,
                receiver_id=self._state.participant_id,
            )
        )
        self._set_awaiting(True)
        self._state.escalation_pending = True

        if not self._is_connected():
            logger.info("Escalation deferred until the support channel connects")
            return True
        await self._publish_escalation()
        return True

    def dismiss_human_suggestion(self) -> None:
        self._state.suggestion_dismissed = True

    def draft_support_email(self) -> SupportEmailDraft:
        """Pre-fill a support e-mail from the last thing the user asked."""
        identity = self._identity
        last = self._state.last_user_message()
        if last is not None:
            subject = f"Support: {last.content[:50]}..."
            content = f"Problème: {last.content}\n\nDescription détaillée : "
        else:
            subject = canned_text.MAIL_DEFAULT_SUBJECT
            content = ""
        return SupportEmailDraft(
            subject=subject,
            content=content,
            user_email=(identity.email or "") if identity else "",
            user_name=identity.display_name if identity else "",
        )

    async def email_support(self, draft: SupportEmailDraft) -> MailResult:
        if not (draft.subject.strip() and draft.content.strip() and draft.user_email.strip()):
            raise ValidationError("subject, content and e-mail address are required")
        if self._mailer is None:
            raise ConflictError("no support mail sender configured")

        result = await self._mailer.send(draft)
        if result.success:
            text = canned_text.MAIL_SENT.format(
                subject=draft.subject, user_email=draft.user_email,
            )
        else:
            text = canned_text.MAIL_FAILED.format(detail=result.message)
        self._append(self._local_message(text, SenderKind.BOT))
        return result

    # -- internals -------------------------------------------------------

    async def _hydrate(self, participant_id: int) -> None:
        try:
            history = await self._history.load(participant_id, self._counterpart_id)
        except HistoryLoadFailed as exc:
            logger.warning("History unavailable, starting fresh: %s", exc.detail)
            return
        for message in history:
            self._append(message)

    async def _on_frame(self, epoch: int, body: str) -> None:
        if epoch != self._epoch:
            logger.debug("Dropping frame for a finished session")
            return
        try:
            wire = parse_wire_message(decode_payload(body))
        except MalformedInbound as exc:
            logger.warning("Discarding malformed frame: %s", exc.detail)
            return

        if wire.origin == self._state.participant_id:
            logger.debug("Ignoring echo of own message %s", wire.id)
            return
        if wire.origin != self._counterpart_id:
            logger.debug("Ignoring frame from non-counterpart sender %s", wire.origin)
            return

        message = wire.to_message(SenderKind.ADMIN, self._clock.now())
        if self._append(message) is None:
            logger.debug("Duplicate delivery of %s dropped", message.id)
            return
        self._set_awaiting(False)

    async def _on_channel_connect(self, epoch: int) -> None:
        if epoch != self._epoch or not self._state.escalation_pending:
            return
        try:
            await self._publish_escalation()
        except PublishFailed as exc:
            logger.warning("Deferred escalation still pending: %s", exc.detail)

    def _on_channel_status(self, epoch: int, status: ConnectionStatus) -> None:
        if epoch != self._epoch:
            return
        self._set_status(status)

    async def _publish_message(self, message: Message) -> None:
        channel = self._channel
        if channel is None:
            raise PublishFailed(
                "support channel is not connected", text=message.content, message_id=message.id,
            )
        payload = outbound_payload(
            self._require_participant(), self._counterpart_id, message.content, message.timestamp,
        )
        try:
            await channel.publish(self._counterpart_address, payload)
        except PublishFailed as exc:
            self._state.undelivered[message.id] = message
            raise PublishFailed(exc.detail, text=message.content, message_id=message.id) from exc
        self._state.undelivered.pop(message.id, None)

    async def _publish_escalation(self) -> None:
        channel = self._channel
        if channel is None:
            return
        participant_id = self._require_participant()
        identity = self._identity
        name = identity.display_name if identity else str(participant_id)
        last = self._state.last_user_message()
        summary = canned_text.ESCALATION_SUMMARY.format(name=name, participant_id=participant_id)
        if last is not None:
            summary = f"{summary} : {last.content}"
        contact = {
            "name": name,
            "email": identity.email if identity else None,
        }

        self._state.escalation_pending = False
        try:
            await channel.publish(
                self._counterpart_address,
                escalation_payload(
                    participant_id, self._counterpart_id, summary, self._clock.now(), contact,
                ),
            )
        except PublishFailed:
            self._state.escalation_pending = True
            raise
        logger.info("Escalation published for participant=%s", participant_id)

    def _append(self, message: Message) -> int | None:
        index = self._state.insert(message)
        if index is not None:
            self._notify(MessageAppended(message, index))
        return index

    def _local_message(
        self,
        content: str,
        sender: SenderKind,
        *,
        sender_id: int | None = None,
        receiver_id: int | None = None,
    ) -> Message:
        return Message(
            id=local_message_id(),
            content=content,
            sender=sender,
            timestamp=self._clock.now(),
            sender_id=sender_id,
            receiver_id=receiver_id,
        )

    def _set_status(self, status: ConnectionStatus) -> None:
        if self._state.connection_status == status:
            return
        self._state.connection_status = status
        self._notify(ConnectionStatusChanged(status))

    def _set_awaiting(self, value: bool) -> None:
        if self._state.awaiting_reply == value:
            return
        self._state.awaiting_reply = value
        self._notify(AwaitingReplyChanged(value))

    def _is_connected(self) -> bool:
        return self._channel is not None and self._channel.is_connected

    def _require_participant(self) -> int:
        participant_id = self._state.participant_id
        if not self._initialized or participant_id is None:
            raise AppError("support session is not initialized")
        return participant_id

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed on %s", type(event).__name__)
