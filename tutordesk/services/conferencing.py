"""Video-conferencing provider adapter.

The provider is an opaque external service; every call may fail on its own.
``provision_meeting`` turns a failed creation into an explicit placeholder
instead of an error, so a session can still be scheduled locally.
"""
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

import httpx

from tutordesk.core.config import settings
from tutordesk.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

PROVIDER = "conferencing"


@dataclass
class MeetingSpec:
    topic: str
    start_time: datetime
    duration: int
    timezone: str = "UTC"
    require_password: bool = True
    is_recorded: bool = False
    waiting_room: bool = True
    allow_join_before_host: bool = False
    mute_on_entry: bool = True


@dataclass
class MeetingRef:
    external_id: str
    join_url: str
    start_url: str
    password: Optional[str] = None


@dataclass
class MeetingProvision:
    """Outcome of scheduling a meeting: a real provider meeting or a placeholder."""
    ref: MeetingRef
    placeholder: bool = False
    reason: Optional[str] = None

    @classmethod
    def real(cls, ref: MeetingRef) -> "MeetingProvision":
        return cls(ref=ref)

    @classmethod
    def degraded(cls, ref: MeetingRef, reason: str) -> "MeetingProvision":
        return cls(ref=ref, placeholder=True, reason=reason)


class ConferencingProvider(Protocol):
    def create_meeting(self, spec: MeetingSpec) -> MeetingRef: ...

    def update_meeting(self, external_id: str, patch: dict) -> None: ...

    def delete_meeting(self, external_id: str) -> None: ...


def generate_password() -> str:
    return secrets.token_hex(4)


class ZoomClient:
    """Zoom-style REST client (``/users/me/meetings``, ``/meetings/{id}``)."""

    def __init__(self, base_url: str, token: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"},
        )

    def _send(self, method: str, url: str, json: Optional[dict] = None) -> httpx.Response:
        if not self.token:
            raise ExternalServiceError(PROVIDER, "provider is not configured")
        try:
            with self._client() as client:
                response = client.request(method, url, json=json)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                PROVIDER, f"{method} {url} returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(PROVIDER, f"{method} {url} failed: {exc}") from exc

    def create_meeting(self, spec: MeetingSpec) -> MeetingRef:
        body = {
            "topic": spec.topic,
            "type": 2,  # scheduled meeting
            "start_time": spec.start_time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": spec.duration,
            "timezone": spec.timezone,
            "settings": {
                "host_video": True,
                "participant_video": False,
                "join_before_host": spec.allow_join_before_host,
                "mute_upon_entry": spec.mute_on_entry,
                "approval_type": 2,
                "audio": "both",
                "auto_recording": "cloud" if spec.is_recorded else "none",
                "waiting_room": spec.waiting_room,
            },
        }
        if spec.require_password:
            body["password"] = generate_password()

        data = self._send("POST", "/users/me/meetings", json=body).json()
        try:
            return MeetingRef(
                external_id=str(data["id"]),
                join_url=data["join_url"],
                start_url=data["start_url"],
                password=data.get("password"),
            )
        except (KeyError, TypeError) as exc:
            raise ExternalServiceError(PROVIDER, f"unexpected create response: {data!r}") from exc

    def update_meeting(self, external_id: str, patch: dict) -> None:
        body = {}
        if "title" in patch:
            body["topic"] = patch["title"]
        if "scheduled_time" in patch:
            body["start_time"] = patch["scheduled_time"].strftime("%Y-%m-%dT%H:%M:%SZ")
        if "duration" in patch:
            body["duration"] = patch["duration"]
        if body:
            self._send("PATCH", f"/meetings/{external_id}", json=body)

    def delete_meeting(self, external_id: str) -> None:
        self._send("DELETE", f"/meetings/{external_id}")


def placeholder_ref(spec: MeetingSpec) -> MeetingRef:
    token = f"placeholder-{uuid.uuid4().hex[:12]}"
    base = settings.PLACEHOLDER_JOIN_BASE.rstrip("/")
    return MeetingRef(
        external_id=token,
        join_url=f"{base}/j/{token}",
        start_url=f"{base}/s/{token}",
        password=generate_password() if spec.require_password else None,
    )


def provision_meeting(provider: ConferencingProvider, spec: MeetingSpec) -> MeetingProvision:
    try:
        return MeetingProvision.real(provider.create_meeting(spec))
    except ExternalServiceError as exc:
        logger.warning("Meeting '%s' scheduled with a placeholder reference: %s", spec.topic, exc)
        return MeetingProvision.degraded(placeholder_ref(spec), str(exc))


def get_default_provider() -> ZoomClient:
    return ZoomClient(settings.CONFERENCE_API_BASE, settings.CONFERENCE_API_TOKEN, settings.CONFERENCE_TIMEOUT)
