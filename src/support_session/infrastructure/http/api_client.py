"""REST collaborators of the support session: identity, history, support e-mail."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from support_session.application.dto.identity import Identity
from support_session.application.dto.mail import MailResult, SupportEmailDraft
from support_session.application.exceptions import HistoryLoadFailed, IdentityUnresolved
from support_session.config import settings

logger = logging.getLogger(__name__)


def build_client(
    *,
    cookies: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Shared client carrying the session cookie of the logged-in user."""
    return httpx.AsyncClient(
        base_url=settings.API_BASE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        cookies=cookies,
        transport=transport,
    )


class HttpIdentityResolver:
    """Implements application.ports.identity.IdentityResolver."""

    def __init__(self, client: httpx.AsyncClient, path: str = settings.IDENTITY_PATH) -> None:
        self._client = client
        self._path = path

    async def resolve(self) -> Identity:
        try:
            resp = await self._client.get(self._path)
        except httpx.HTTPError as exc:
            raise IdentityUnresolved(f"identity endpoint unreachable: {exc}") from exc
        if resp.status_code in (401, 403):
            raise IdentityUnresolved("not authenticated")
        if not resp.is_success:
            raise IdentityUnresolved(f"identity endpoint returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            raise IdentityUnresolved("identity endpoint did not return JSON") from None
        if not isinstance(data, dict):
            raise IdentityUnresolved("unexpected identity payload")
        if isinstance(data.get("user"), dict):
            data = data["user"]
        raw_id = data.get("clientId", data.get("id"))
        try:
            participant_id = int(raw_id)
        except (TypeError, ValueError):
            raise IdentityUnresolved("identity carries no numeric id") from None

        return Identity(
            participant_id=participant_id,
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            email=data.get("email"),
        )


class HttpHistorySource:
    """Implements application.ports.history.HistorySource."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        path_template: str = settings.HISTORY_PATH_TEMPLATE,
    ) -> None:
        self._client = client
        self._path_template = path_template

    async def fetch(self, self_id: int, counterpart_id: int) -> list[dict[str, Any]]:
        path = self._path_template.format(self_id=self_id, counterpart_id=counterpart_id)
        try:
            resp = await self._client.get(path)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise HistoryLoadFailed(f"GET {path} failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise HistoryLoadFailed(f"GET {path} did not return JSON") from exc
        if isinstance(data, dict):
            data = data.get("messages", [])
        if not isinstance(data, list):
            raise HistoryLoadFailed(f"unexpected history payload from {path}")
        return [r for r in data if isinstance(r, dict)]


class HttpSupportMailer:
    """Implements application.ports.mail.SupportMailSender.

    Tries the authenticated endpoint first and falls back to the public one
    when the user has no valid session.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        path: str = settings.SUPPORT_MAIL_PATH,
        public_path: str = settings.PUBLIC_SUPPORT_MAIL_PATH,
    ) -> None:
        self._client = client
        self._path = path
        self._public_path = public_path

    async def send(self, draft: SupportEmailDraft) -> MailResult:
        body = {
            "subject": draft.subject,
            "content": draft.content,
            "userEmail": draft.user_email,
            "userName": draft.user_name or "Utilisateur MyLb",
        }
        try:
            resp = await self._client.post(self._path, json=body)
            if resp.status_code == 401:
                logger.info("Not authenticated, using public support endpoint")
                resp = await self._client.post(self._public_path, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Support e-mail failed: %s", exc)
            return MailResult(success=False, message="Erreur de connexion au serveur")

        if resp.status_code >= 400:
            return MailResult(
                success=False, message=f"Erreur HTTP: {resp.status_code} - {resp.text}",
            )
        try:
            data = resp.json()
        except ValueError:
            return MailResult(success=False, message="Réponse invalide du serveur")
        if not isinstance(data, dict):
            return MailResult(success=False, message="Réponse invalide du serveur")
        if data.get("success"):
            return MailResult(success=True, message=data.get("message", ""))
        return MailResult(success=False, message=data.get("message") or "Erreur inconnue du serveur")
