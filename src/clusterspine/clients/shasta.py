"""
HTTP client for the cluster management plane (CSM "Shasta" APIs).

One ``httpx.AsyncClient`` behind the API gateway serves every back-end the
pipeline talks to:

======================  ==============================================
CFS                     configurations, image-customisation sessions
IMS                     images
BOS v2                  session templates, boot sessions
HSM (smd)               node groups, component power state
CAPMC                   power off
======================  ==============================================

``ShastaClient`` implements both :class:`ManagementPlane` and
:class:`NodeDirectory`. Every non-2xx response becomes a
:class:`RemoteError` carrying the status, URL and the API's ``detail``
field; a 404 on a lookup becomes ``None`` (or :class:`NotFoundError` where
absence is fatal).

Example:
    async with ShastaClient.from_settings(settings, token) as client:
        configuration = await client.get_configuration("zinal-cos-config")
"""

from __future__ import annotations

import ssl
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from clusterspine.core.errors import NotFoundError, RemoteError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import (
    BuildJob,
    BuildRequest,
    Configuration,
    Image,
    JobState,
    Layer,
    SessionTemplate,
)
from clusterspine.core.settings import ClusterSpineSettings

logger = get_logger(__name__)

_CFS_STATES = {
    "pending": JobState.PENDING,
    "running": JobState.RUNNING,
}


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("detail") or body.get("message") or body.get("title")
    return None


def parse_configuration(data: dict[str, Any]) -> Configuration:
    layers = tuple(
        Layer(
            name=layer.get("name", ""),
            clone_url=layer.get("cloneUrl", ""),
            playbook=layer.get("playbook", "site.yml"),
            commit=layer.get("commit"),
            branch=layer.get("branch"),
        )
        for layer in data.get("layers", [])
    )
    return Configuration(name=data["name"], layers=layers, last_updated=data.get("lastUpdated"))


def parse_image(data: dict[str, Any]) -> Image:
    link = data.get("link") or {}
    created = data.get("created")
    return Image(
        id=data["id"],
        name=data.get("name", ""),
        etag=link.get("etag"),
        path=link.get("path"),
        type=link.get("type"),
        created=datetime.fromisoformat(created) if created else None,
    )


def parse_build_job(data: dict[str, Any]) -> BuildJob:
    """Map a CFS session onto a :class:`BuildJob`.

    ``status.session.status`` is ``pending``/``running``/``complete``; a
    complete session succeeded only if ``succeeded`` is ``"true"``.
    """
    status = data.get("status") or {}
    session = status.get("session") or {}
    raw = session.get("status", "pending")

    if raw == "complete":
        succeeded = str(session.get("succeeded", "false")).lower() == "true"
        state = JobState.SUCCEEDED if succeeded else JobState.FAILED
    else:
        state = _CFS_STATES.get(raw, JobState.PENDING)

    artifacts = status.get("artifacts") or []
    result_id = artifacts[0].get("result_id") if artifacts else None
    return BuildJob(id=data["name"], state=state, result_image_id=result_id)


def build_session_payload(request: BuildRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": request.name,
        "configurationName": request.configuration,
        "target": {
            "definition": "image",
            "groups": [{"name": group, "members": [request.base_image_id]} for group in request.groups],
            "image_map": [{"source_id": request.base_image_id, "result_name": request.name}],
        },
    }
    if request.ansible_verbosity is not None:
        payload["ansibleVerbosity"] = request.ansible_verbosity
    if request.ansible_passthrough:
        payload["ansiblePassthrough"] = request.ansible_passthrough
    return payload


class ShastaClient:
    """Async client for the management plane APIs."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: ClusterSpineSettings,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ShastaClient:
        verify: ssl.SSLContext | bool = True
        if settings.root_cert is not None:
            verify = ssl.create_default_context(cafile=str(settings.root_cert))

        client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=settings.request_timeout,
            verify=verify,
            proxy=settings.socks5_proxy,
            transport=transport,
        )
        return cls(client)

    async def __aenter__(self) -> ShastaClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allow_404: bool = False,
        **kwargs: Any,
    ) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed", url=path, detail=str(e), cause=e) from e

        logger.debug("shasta.response", method=method, path=path, status=response.status_code)
        if allow_404 and response.status_code == 404:
            return None
        if response.is_error:
            raise RemoteError(
                f"{method} {path} returned {response.status_code}",
                http_status=response.status_code,
                url=str(response.request.url),
                detail=_error_detail(response),
            )
        if not response.content:
            return {}
        return response.json()

    # ── CFS configurations ───────────────────────────────────────

    async def put_configuration(self, name: str, layers: Sequence[Layer]) -> Configuration:
        data = await self._request(
            "PUT",
            f"/cfs/v2/configurations/{name}",
            json={"layers": [layer.to_payload() for layer in layers]},
        )
        return parse_configuration({"name": name, **data})

    async def get_configuration(self, name: str) -> Configuration | None:
        data = await self._request("GET", f"/cfs/v2/configurations/{name}", allow_404=True)
        return None if data is None else parse_configuration({"name": name, **data})

    # ── IMS images ───────────────────────────────────────────────

    async def list_images(self) -> list[Image]:
        data = await self._request("GET", "/ims/v3/images")
        return [parse_image(item) for item in data or []]

    async def get_image(self, image_id: str) -> Image | None:
        data = await self._request("GET", f"/ims/v3/images/{image_id}", allow_404=True)
        return None if data is None else parse_image(data)

    # ── CFS sessions (image builds) ──────────────────────────────

    async def submit_build(self, request: BuildRequest) -> BuildJob:
        data = await self._request("POST", "/cfs/v2/sessions", json=build_session_payload(request))
        return parse_build_job({"name": request.name, **data})

    async def get_build(self, job_id: str) -> BuildJob:
        data = await self._request("GET", f"/cfs/v2/sessions/{job_id}")
        return parse_build_job({"name": job_id, **data})

    # ── BOS ──────────────────────────────────────────────────────

    async def put_session_template(self, template: SessionTemplate) -> SessionTemplate:
        payload = template.to_payload()
        payload.pop("name")
        await self._request("PUT", f"/bos/v2/sessiontemplates/{template.name}", json=payload)
        return template

    async def create_boot_session(self, template_name: str, xnames: Sequence[str]) -> str:
        data = await self._request(
            "POST",
            "/bos/v2/sessions",
            json={"operation": "boot", "template_name": template_name, "limit": ",".join(xnames)},
        )
        return data.get("name", "")

    # ── HSM / CAPMC ──────────────────────────────────────────────

    async def group_members(self, group: str) -> list[str]:
        data = await self._request("GET", f"/smd/hsm/v2/groups/{group}", allow_404=True)
        if data is None:
            raise NotFoundError("node group", group)
        return list((data.get("members") or {}).get("ids") or [])

    async def power_states(self, xnames: Sequence[str]) -> dict[str, str]:
        data = await self._request(
            "GET",
            "/smd/hsm/v2/State/Components",
            params=[("id", xname) for xname in xnames],
        )
        return {c["ID"]: c.get("State", "") for c in data.get("Components", [])}

    async def power_off(self, xnames: Sequence[str], *, reason: str, force: bool = True) -> None:
        data = await self._request(
            "POST",
            "/capmc/capmc/v1/xname_off",
            json={"xnames": list(xnames), "force": force, "reason": reason},
        )
        if data.get("e", 0) != 0:
            raise RemoteError(
                "power off rejected",
                url="/capmc/capmc/v1/xname_off",
                detail=data.get("err_msg"),
            )
