"""Entrypoint: python -m support_session

Terminal front end for a support session. Commands: /human, /email,
/retry, /quit. The session cookie is read from SUPPORT_SESSION_COOKIE.
"""
from __future__ import annotations

import asyncio
import logging

from support_session.application.exceptions import AppError, IdentityUnresolved, PublishFailed
from support_session.config import settings
from support_session.domain.events.session_events import (
    ConnectionStatusChanged,
    MessageAppended,
    ModeChanged,
    SessionEvent,
)
from support_session.infrastructure.http.api_client import (
    HttpHistorySource,
    HttpIdentityResolver,
    HttpSupportMailer,
    build_client,
)
from support_session.services.history_loader import HistoryLoader
from support_session.services.support_session import SupportSession

logger = logging.getLogger(__name__)


def _render(event: SessionEvent) -> None:
    if isinstance(event, MessageAppended):
        m = event.message
        print(f"[{m.timestamp:%H:%M}] {m.sender}: {m.content}\n")
    elif isinstance(event, ModeChanged):
        print(f"-- mode: {event.mode}")
    elif isinstance(event, ConnectionStatusChanged):
        print(f"-- connection: {event.status}")


async def run_console() -> None:
    cookie = settings.SUPPORT_SESSION_COOKIE
    client = build_client(
        cookies={settings.SESSION_COOKIE_NAME: cookie} if cookie else None,
    )
    session = SupportSession(
        HistoryLoader(HttpHistorySource(client)),
        mailer=HttpSupportMailer(client),
    )
    session.subscribe(_render)
    last_failed: PublishFailed | None = None
    try:
        try:
            await session.initialize_with(HttpIdentityResolver(client))
        except IdentityUnresolved as exc:
            print(f"Veuillez vous reconnecter ({exc.detail}).")
            return

        loop = asyncio.get_running_loop()
        while True:
            line = (await loop.run_in_executor(None, input, "> ")).strip()
            if line == "/quit":
                break
            try:
                if line == "/human":
                    await session.request_human()
                elif line == "/email":
                    await session.email_support(session.draft_support_email())
                elif line == "/retry":
                    if last_failed and last_failed.message_id:
                        await session.resend(last_failed.message_id)
                    elif last_failed and last_failed.text:
                        await session.send(last_failed.text)
                    last_failed = None
                else:
                    await session.send(line)
                    if session.state.suggest_human:
                        print("-- tapez /human pour parler à un conseiller")
                        session.dismiss_human_suggestion()
            except PublishFailed as exc:
                last_failed = exc
                print(f"-- envoi impossible ({exc.detail}), tapez /retry")
            except AppError as exc:
                print(f"-- {exc.detail}")
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await session.teardown()
        await client.aclose()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_console())


if __name__ == "__main__":
    main()
