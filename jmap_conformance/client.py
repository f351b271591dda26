"""JMAP protocol client used by the lifecycle manager and the checks."""

import json
import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import aiohttp
from multidict import CIMultiDictProxy
from pydantic import ValidationError

from jmap_conformance.config import AccountConfig, HarnessConfig
from jmap_conformance.errors import ConfigurationError, MethodError, TransportError
from jmap_conformance.models.result import Exchange
from jmap_conformance.models.session import (
    CORE_CAPABILITY,
    MAIL_CAPABILITY,
    SUBMISSION_CAPABILITY,
    VACATION_CAPABILITY,
    Session,
)

log = logging.getLogger(__name__)

type Invocation = Sequence[Any]

LOG_BODY_LIMIT = 500


@dataclass(frozen=True, kw_only=True)
class RawResponse:
    """Undecoded HTTP response, returned where checks inspect status codes."""

    status: int
    headers: CIMultiDictProxy[str]
    body: bytes


def build_auth_header(auth_method: str, account: AccountConfig) -> str:
    """Build the Authorization header value for an account."""
    password = account.password.get_secret_value()
    if auth_method == "basic":
        return aiohttp.BasicAuth(account.username, password).encode()
    return f"Bearer {password}"


async def fetch_session(http: aiohttp.ClientSession, session_url: str) -> Session:
    """Fetch and validate the session resource.

    Raises:
        TransportError: If the session resource cannot be retrieved.
        ConfigurationError: If the resource is not a usable JMAP session.

    """
    try:
        async with http.get(
            session_url, headers={"Accept": "application/json"}
        ) as response:
            text = await response.text()
    except (aiohttp.ClientError, TimeoutError) as exc:
        raise TransportError(f"GET {session_url} failed: {exc}") from exc

    if not response.ok:
        raise TransportError(
            f"HTTP {response.status}: {response.reason}", response.status, text
        )

    try:
        session = Session.model_validate_json(text)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid session resource: {exc}") from exc

    if not session.has_capability(CORE_CAPABILITY):
        raise ConfigurationError(
            f"Session must advertise {CORE_CAPABILITY} capability"
        )
    return session


def _decode_body(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return f"<binary {len(raw)} bytes>"


def _truncate(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text[:LOG_BODY_LIMIT]


@dataclass(kw_only=True)
class JmapClient:
    """Client for one authenticated principal.

    Every request is recorded as an :class:`Exchange` until the next
    :meth:`drain_exchanges` so failing checks can show what was sent.
    """

    session_url: str
    session: Session
    account_id: str
    http: aiohttp.ClientSession = field(repr=False)
    auth_header: str = field(repr=False)
    states: dict[str, str] = field(default_factory=dict)
    _exchanges: list[Exchange] = field(default_factory=list, repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, account: AccountConfig, config: HarnessConfig
    ) -> AsyncGenerator["JmapClient", None]:
        """Bootstrap a client with a managed HTTP session lifecycle."""
        auth_header = build_auth_header(config.auth_method, account)
        async with aiohttp.ClientSession(
            headers={"Authorization": auth_header},
            timeout=aiohttp.ClientTimeout(total=config.timeout),
        ) as http:
            session = await fetch_session(http, config.session_url)
            try:
                account_id = session.mail_account_id()
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
            yield cls(
                session_url=config.session_url,
                session=session,
                account_id=account_id,
                http=http,
                auth_header=auth_header,
            )

    async def refresh_session(self) -> None:
        """Re-fetch the session resource."""
        self.session = await fetch_session(self.http, self.session_url)

    def drain_exchanges(self) -> list[Exchange]:
        """Return and clear the exchanges recorded since the last drain."""
        drained = self._exchanges
        self._exchanges = []
        return drained

    def _record(
        self,
        method: str,
        url: str,
        request_body: Any,
        status: int,
        response_body: Any,
    ) -> None:
        self._exchanges.append(
            Exchange(
                method=method,
                url=url,
                request_body=request_body,
                status=status,
                response_body=response_body,
            )
        )

    async def _send(
        self, method: str, url: str, **kwargs: Any
    ) -> tuple[int, str, CIMultiDictProxy[str], bytes]:
        log.debug("-> %s %s", method, url)
        try:
            async with self.http.request(method, url, **kwargs) as response:
                body = await response.read()
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        log.debug("<- %s %s", response.status, response.reason)
        return response.status, response.reason or "", response.headers, body

    async def request(
        self,
        using: Sequence[str],
        method_calls: Sequence[Invocation],
        created_ids: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send a JMAP API request and return the decoded response envelope.

        Raises:
            TransportError: On network errors or a non-2xx HTTP status.

        """
        payload: dict[str, Any] = {
            "using": list(using),
            "methodCalls": [list(call) for call in method_calls],
        }
        if created_ids is not None:
            payload["createdIds"] = dict(created_ids)

        url = self.session.api_url
        log.debug("   request: %s", _truncate(payload))
        status, reason, _, raw = await self._send("POST", url, json=payload)
        body = _decode_body(raw)
        self._record("POST", url, payload, status, body)

        if not 200 <= status < 300:
            raise TransportError(
                f"HTTP {status}: {reason}", status, raw.decode(errors="replace")
            )
        if not isinstance(body, dict):
            raise TransportError(
                f"HTTP {status}: response is not a JSON object", status
            )
        log.debug("   response: %s", _truncate(body))
        return body

    async def raw_request(
        self,
        using: Sequence[str],
        method_calls: Sequence[Invocation],
        created_ids: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send a request and return the full envelope, method errors included."""
        return await self.request(using, method_calls, created_ids)

    async def call(
        self, method_name: str, args: Mapping[str, Any], call_id: str = "c0"
    ) -> dict[str, Any]:
        """Make a single method call and return its response arguments.

        Raises:
            MethodError: If the server answers with a method-level error.
            TransportError: On transport failures or a malformed envelope.

        """
        response = await self.request(
            self.default_using(), [[method_name, dict(args), call_id]]
        )
        method_responses = response.get("methodResponses") or []
        if not method_responses:
            raise TransportError("Response contains no methodResponses")

        name, response_args, *_ = method_responses[0]
        if name == "error":
            raise MethodError(
                response_args.get("type", "unknown"), response_args.get("description")
            )
        return response_args

    async def raw_post(
        self, body: str | bytes, content_type: str = "application/json"
    ) -> RawResponse:
        """POST an arbitrary body to the API URL, for request-level error checks."""
        url = self.session.api_url
        status, _, headers, raw = await self._send(
            "POST", url, data=body, headers={"Content-Type": content_type}
        )
        self._record("POST", url, body, status, _decode_body(raw))
        return RawResponse(status=status, headers=headers, body=raw)

    async def upload(
        self,
        data: bytes,
        content_type: str = "application/octet-stream",
        account_id: str | None = None,
    ) -> dict[str, Any]:
        """Upload binary data and return ``{accountId, blobId, type, size}``.

        Raises:
            TransportError: If the upload is rejected.

        """
        url = self.session.upload_url.replace(
            "{accountId}", account_id or self.account_id
        )
        status, reason, _, raw = await self._send(
            "POST", url, data=data, headers={"Content-Type": content_type}
        )
        body = _decode_body(raw)
        self._record("POST", url, f"<upload {len(data)} bytes {content_type}>", status, body)
        if not 200 <= status < 300 or not isinstance(body, dict):
            raise TransportError(
                f"Upload failed: {status} {reason}", status, raw.decode(errors="replace")
            )
        return body

    async def download(
        self,
        blob_id: str,
        type: str = "application/octet-stream",
        name: str = "download",
        account_id: str | None = None,
    ) -> RawResponse:
        """Download a blob through the session's download URL template."""
        url = (
            self.session.download_url.replace(
                "{accountId}", account_id or self.account_id
            )
            .replace("{blobId}", blob_id)
            .replace("{type}", quote(type, safe=""))
            .replace("{name}", quote(name, safe=""))
        )
        status, _, headers, raw = await self._send("GET", url)
        self._record("GET", url, None, status, f"<binary {len(raw)} bytes>")
        return RawResponse(status=status, headers=headers, body=raw)

    def update_state(self, type_name: str, state: str) -> None:
        """Remember the latest state token seen for a data type."""
        self.states[type_name] = state

    def get_state(self, type_name: str) -> str | None:
        """Return the last remembered state token for a data type."""
        return self.states.get(type_name)

    def default_using(self) -> list[str]:
        """Capabilities to declare for mail method calls."""
        using = [CORE_CAPABILITY, MAIL_CAPABILITY]
        for capability in (SUBMISSION_CAPABILITY, VACATION_CAPABILITY):
            if self.session.has_capability(capability):
                using.append(capability)
        return using

    @staticmethod
    def ref(result_of: str, name: str, path: str) -> dict[str, str]:
        """Build a result reference for back-referencing a previous call."""
        return {"resultOf": result_of, "name": name, "path": path}
