"""Vercel REST API client.

https://vercel.com/docs/rest-api
"""

from typing import Any

import httpx

from deploy_orchestrator.config import settings
from deploy_orchestrator.core.exceptions import ProviderError
from deploy_orchestrator.models.deployment import DeploymentDescriptor, RemoteState
from deploy_orchestrator.providers.base import DeploymentProvider

# Vercel reports a few pre-build states; they are all still "building" to us
READY_STATE_MAP = {
    "QUEUED": RemoteState.BUILDING,
    "INITIALIZING": RemoteState.BUILDING,
    "BUILDING": RemoteState.BUILDING,
    "READY": RemoteState.READY,
    "ERROR": RemoteState.ERROR,
    "CANCELED": RemoteState.CANCELED,
}


class VercelProvider(DeploymentProvider):
    """Deploys GitHub repositories through the Vercel REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        team_id: str | None = None,
        git_ref: str | None = None,
        timeout: float | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        super().__init__()
        self.team_id = team_id if team_id is not None else settings.vercel_team_id
        self.git_ref = git_ref or settings.vercel_git_ref
        self._http = http or httpx.AsyncClient(
            base_url=base_url or settings.vercel_api_url,
            timeout=timeout or settings.provider_timeout,
        )

    @property
    def name(self) -> str:
        return "vercel"

    async def create_deployment(
        self,
        token: str,
        target_name: str,
        source_repo: str,
        production: bool = True,
    ) -> DeploymentDescriptor:
        await self._ensure_project(token, target_name, source_repo)

        self.logger.info(
            "vercel.create_deployment",
            target=target_name,
            repo=source_repo,
            production=production,
        )
        response = await self._request(
            "POST",
            "/v13/deployments",
            token,
            json={
                "name": target_name,
                "gitSource": {
                    "type": "github",
                    "repo": source_repo,
                    "ref": self.git_ref,
                },
                "target": "production" if production else "preview",
            },
        )
        if response.is_error:
            raise self._error("Failed to deploy to Vercel", response)

        return self._descriptor(response.json())

    async def get_deployment_status(self, token: str, deployment_id: str) -> DeploymentDescriptor:
        response = await self._request("GET", f"/v13/deployments/{deployment_id}", token)
        if response.is_error:
            raise self._error("Failed to get deployment status", response)

        return self._descriptor(response.json())

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _ensure_project(self, token: str, target_name: str, source_repo: str) -> None:
        """Create the Vercel project linked to ``source_repo`` unless it exists."""
        response = await self._request("GET", f"/v9/projects/{target_name}", token)
        if response.is_success:
            return

        self.logger.info("vercel.create_project", target=target_name, repo=source_repo)
        response = await self._request(
            "POST",
            "/v10/projects",
            token,
            json={
                "name": target_name,
                "gitRepository": {"type": "github", "repo": source_repo},
                "framework": "nextjs",
                "buildCommand": "npm run build",
                "devCommand": "npm run dev",
                "installCommand": "npm install",
                "outputDirectory": ".next",
            },
        )
        if response.is_error:
            raise self._error("Failed to create Vercel project", response)

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        params = {"teamId": self.team_id} if self.team_id else None
        try:
            return await self._http.request(
                method,
                path,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            self.logger.warning("vercel.request_timeout", method=method, path=path)
            raise ProviderError("Request timeout calling Vercel") from e
        except httpx.TransportError as e:
            self.logger.warning("vercel.network_error", method=method, path=path, error=type(e).__name__)
            raise ProviderError(f"Network error calling Vercel: {type(e).__name__}") from e

    @staticmethod
    def _error(prefix: str, response: httpx.Response) -> ProviderError:
        code = None
        message = response.reason_phrase
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            code = body["error"].get("code")
            message = body["error"].get("message") or message
        return ProviderError(
            f"{prefix}: {message}",
            status_code=response.status_code,
            code=code,
        )

    @staticmethod
    def _descriptor(payload: dict[str, Any]) -> DeploymentDescriptor:
        ready_state = payload.get("readyState") or payload.get("state") or "BUILDING"
        return DeploymentDescriptor(
            id=payload["id"],
            url=payload.get("url") or "",
            remote_state=READY_STATE_MAP.get(ready_state.upper(), RemoteState.BUILDING),
            inspector_url=payload.get("inspectorUrl"),
            error_code=payload.get("errorCode"),
            error_message=payload.get("errorMessage"),
        )
