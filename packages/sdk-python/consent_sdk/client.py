"""ConsentHub API client."""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

import requests

from consent_sdk.cache import LocalConsentCache
from consent_sdk.errors import TransportError, ValidationError, error_from_response
from consent_sdk.platforms import DeviceBridge, HeadlessBridge, WebBridge
from consent_sdk.retry import RetryCallback, RetryPolicy
from consent_sdk.types import (
    DOCUMENT_TYPES,
    REQUIRED_TYPES,
    CheckFallback,
    ConsentOptions,
    ConsentType,
    SyncResult,
    UpdateResult,
    format_timestamp,
)

logger = logging.getLogger(__name__)

PLATFORMS = ("web", "ios", "android", "server")

ConsentChangeCallback = Callable[[ConsentType, bool], None]


class ConsentHubClient:
    """Client for the ConsentHub API.

    One instance per app/device. ``check_fallback`` decides what
    ``check_consent`` answers when the server cannot be reached; there is no
    implicit default.
    """

    def __init__(
        self,
        api_key: str,
        client_id: str,
        platform: str,
        check_fallback: CheckFallback,
        base_url: str = "http://localhost:8000",
        user_id: Optional[str] = None,
        bridge: Optional[DeviceBridge] = None,
        cache: Optional[LocalConsentCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 10.0,
        queue_offline: bool = True,
        default_version: str = "1.0",
        on_consent_change: Optional[ConsentChangeCallback] = None,
        on_retry: Optional[RetryCallback] = None,
        session=None,
    ):
        """Initialize client."""
        if platform not in PLATFORMS:
            raise ValueError(f"platform must be one of {', '.join(PLATFORMS)}")
        self.api_key = api_key
        self.client_id = client_id
        self.platform = platform
        self.check_fallback = CheckFallback(check_fallback)
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.bridge = bridge or (WebBridge() if platform == "web" else HeadlessBridge(platform))
        self.cache = cache or LocalConsentCache()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.queue_offline = queue_offline
        self.default_version = default_version
        self.on_consent_change = on_consent_change
        self.on_retry = on_retry

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "X-Client-ID": client_id,
                "X-Device-ID": self.bridge.device_id,
                "X-Platform": platform,
            }
        )

    @property
    def subject(self) -> str:
        """User id when known, otherwise the device id."""
        return self.user_id or self.bridge.device_id

    @property
    def pending_count(self) -> int:
        return len(self.cache.pending_events())

    # Transport

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ):
        url = f"{self.base_url}{path}"

        def send():
            try:
                response = self.session.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=headers,
                    timeout=self.timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                raise TransportError(f"{method} {path} failed: {e}") from e
            if response.status_code >= 400:
                raise error_from_response(response)
            return response

        return self.retry_policy.call(send, on_retry=self.on_retry)

    # Consents

    def check_consent(self, consent_type: Union[ConsentType, str]) -> bool:
        """Whether the subject currently grants a consent type."""
        consent_type = ConsentType(consent_type)
        if consent_type in REQUIRED_TYPES:
            return True

        payload = {
            "type": consent_type.value,
            "userId": self.user_id,
            "deviceId": self.bridge.device_id,
            "platform": self.platform,
        }
        try:
            data = self._request("POST", "/v1/consents/check", json=payload).json()
        except TransportError:
            if self.check_fallback is CheckFallback.RAISE:
                raise
            logger.warning(f"Consent check for {consent_type.value} failed closed")
            return False

        self.cache.set_state(
            consent_type.value,
            {
                "type": consent_type.value,
                "granted": data["granted"],
                "version": data.get("version"),
                "updatedAt": data.get("updatedAt"),
                "required": data.get("required", False),
            },
        )
        return bool(data["granted"])

    def _document_reference(
        self, consent_type: ConsentType, options: ConsentOptions
    ) -> tuple[Optional[str], Optional[str]]:
        if consent_type not in DOCUMENT_TYPES or (options.version and options.document_hash):
            return options.version, options.document_hash
        try:
            document = self.get_policy_document(consent_type, options.version)
        except TransportError:
            document = self.cache.get_document(consent_type.value)
            if document is None or (options.version and document["version"] != options.version):
                raise
            logger.warning(f"Using cached {consent_type.value} policy document {document['version']}")
        return document["version"], document["hash"]

    def update_consent(
        self,
        consent_type: Union[ConsentType, str],
        granted: bool,
        options: Optional[ConsentOptions] = None,
    ) -> UpdateResult:
        """Record a grant or revocation.

        The event id doubles as the idempotency key, so retries and later
        syncs of the same event are deduplicated by the server.
        """
        consent_type = ConsentType(consent_type)
        options = options or ConsentOptions()
        version, document_hash = self._document_reference(consent_type, options)

        event = {
            "id": str(uuid.uuid4()),
            "userId": self.subject,
            "type": consent_type.value,
            "granted": bool(granted),
            "timestamp": format_timestamp(datetime.now(timezone.utc)),
            "version": version or self.default_version,
            "documentHash": document_hash,
            "source": "sdk",
            "metadata": {
                **options.metadata,
                "deviceInfo": options.device_info or self.bridge.device_info(),
                "platform": self.platform,
            },
        }

        try:
            response = self._request(
                "POST",
                "/v1/consents",
                json=event,
                headers={"idempotency-key": event["id"]},
            )
        except TransportError as e:
            if not self.queue_offline:
                raise
            self.cache.enqueue(event)
            logger.warning(f"Queued consent event {event['id']} for later sync: {e}")
            return UpdateResult(event_id=event["id"], committed=False, queued=True, event=event)

        stored = response.json()
        self.cache.set_state(
            consent_type.value,
            {
                "type": consent_type.value,
                "granted": stored["granted"],
                "version": stored["version"],
                "updatedAt": stored["timestamp"],
            },
        )
        if self.on_consent_change:
            self.on_consent_change(consent_type, bool(granted))
        return UpdateResult(event_id=event["id"], committed=True, event=stored)

    def sync_consents(self) -> SyncResult:
        """Push queued events and adopt the server's current state.

        A ConflictError leaves the queue untouched; resolve it with
        discard_pending before syncing again.
        """
        pending = self.cache.pending_events()
        payload = {
            "userId": self.user_id,
            "deviceId": self.bridge.device_id,
            "platform": self.platform,
            "deviceInfo": self.bridge.device_info(),
            "events": [
                {key: value for key, value in event.items() if key != "userId"}
                for event in pending
            ],
        }
        data = self._request("POST", "/v1/consents/sync", json=payload).json()

        applied = data.get("applied", [])
        duplicates = data.get("duplicates", [])
        self.cache.remove_pending(applied + duplicates)
        self.cache.replace_states(data.get("states", []))

        if self.on_consent_change:
            by_id = {event["id"]: event for event in pending}
            for event_id in applied:
                event = by_id.get(event_id)
                if event:
                    self.on_consent_change(ConsentType(event["type"]), event["granted"])

        return SyncResult(
            applied=applied,
            duplicates=duplicates,
            states={state["type"]: state for state in data.get("states", [])},
        )

    def discard_pending(self, event_id: str) -> bool:
        """Drop a queued event (e.g. after a sync conflict)."""
        return self.cache.remove_pending([event_id]) > 0

    def request_push_notification_consent(self) -> bool:
        """Prompt for push permission and record a grant."""
        if self.platform == "web":
            return False
        granted = self.bridge.request_push_permission()
        if granted:
            self.update_consent(
                ConsentType.PUSH_NOTIFICATIONS,
                True,
                ConsentOptions(metadata={"source": "native_prompt"}),
            )
        return granted

    # Policies

    def get_policy_document(
        self, consent_type: Union[ConsentType, str], version: Optional[str] = None
    ) -> dict:
        """Fetch a policy document (the one in force when version is omitted)."""
        consent_type = ConsentType(consent_type)
        params = {"version": version} if version else None
        document = self._request("GET", f"/v1/policies/{consent_type.value}", params=params).json()
        if version is None:
            self.cache.set_document(consent_type.value, document)
        return document

    def publish_policy_document(
        self,
        consent_type: Union[ConsentType, str],
        version: str,
        content: str,
        effective_date: Optional[datetime] = None,
        url: Optional[str] = None,
    ) -> dict:
        """Publish a new document version (admin key required)."""
        consent_type = ConsentType(consent_type)
        payload = {
            "type": consent_type.value,
            "version": version,
            "content": content,
            "hash": hashlib.sha256(content.encode("utf-8")).hexdigest(),
            "url": url,
        }
        if effective_date:
            payload["effectiveDate"] = format_timestamp(effective_date)
        return self._request("POST", "/v1/policies", json=payload).json()

    # Users

    def get_user_consents(self, user_id: Optional[str] = None) -> list[dict]:
        """Full consent history."""
        return self._request("GET", f"/v1/users/{user_id or self.subject}/consents").json()

    def get_consent_state(self, user_id: Optional[str] = None) -> dict[str, dict]:
        """Current state of every consent type, keyed by type."""
        user_id = user_id or self.subject
        states = self._request("GET", f"/v1/users/{user_id}/consents/state").json()
        if user_id == self.subject:
            self.cache.replace_states(states)
        return {state["type"]: state for state in states}

    def export_user_consents(self, user_id: Optional[str] = None) -> bytes:
        """Portable JSON export of the full history."""
        return self._request("GET", f"/v1/users/{user_id or self.subject}/consents/export").content

    def delete_user_consents(self, user_id: str, confirm: bool = False) -> dict:
        """Irreversibly delete a user's history. Requires confirm=True."""
        if confirm is not True:
            raise ValidationError("Deleting consent history requires confirm=True")
        result = self._request(
            "DELETE",
            f"/v1/users/{user_id}/consents",
            headers={"x-confirm-purge": user_id},
        ).json()
        if user_id == self.subject:
            self.cache.clear()
        return result
