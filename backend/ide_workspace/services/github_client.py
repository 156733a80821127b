"""
IDE Workspace — GitHub Git Data API Client
===========================================

What:  RemoteObjectStore implementation over the GitHub REST API.
How:   One shared httpx.AsyncClient (created lazily, closed at shutdown).
       API calls send the caller's token as a Bearer credential; blob downloads
       carry it only to GitHub hosts. Responses are parsed into the schemas in
       schemas/remote.py and HTTP failures are translated into the RemoteError
       family.
Who:   The SyncEngine singleton in production; tests swap in an in-memory
       remote or drive this class through httpx.MockTransport.

Status Mapping:
    401                          → RemoteAuthError
    403 (rate limit exhausted)   → RemoteError
    403 (otherwise)              → RemoteAuthError (token lacks access)
    404                          → RemoteNotFoundError
    409 (empty repository)       → RemoteNotFoundError
    other 4xx / 5xx              → RemoteError
    transport failure / timeout  → RemoteError
    2xx with an unreadable body  → RemoteError
"""

import base64
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx

from ide_workspace.config import settings
from ide_workspace.exceptions import RemoteAuthError, RemoteError, RemoteNotFoundError
from ide_workspace.schemas.remote import (
    NewTreeEntry,
    RemoteBlob,
    RemoteCommit,
    RemoteRef,
    RemoteRepository,
    RemoteTree,
    RemoteTreeEntry,
    RemoteUser,
)
from ide_workspace.services.remote_base import RemoteObjectStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body)
    return str(body)


class GitHubClient(RemoteObjectStore):
    """
    GitHub implementation of the remote object store.

    Args:
        base_url:  API root (settings.github_api_url by default)
        transport: Optional httpx transport (MockTransport in tests)
        timeout:   Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.credential_hosts = {httpx.URL(self.base_url).host.lower()}
        self.credential_hosts.update(settings.github_content_hosts_list)
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.remote_timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": settings.github_api_version,
                },
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Transport ─────────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        authenticate: bool = True,
    ) -> httpx.Response:
        if not token:
            raise RemoteAuthError(
                message="A GitHub access token is required. Supply a personal access token with the 'repo' scope."
            )
        headers = {"Authorization": f"Bearer {token}"} if authenticate else None
        try:
            response = await self.client.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.warning("GitHub %s %s timed out: %s", method, url, e)
            raise RemoteError(
                message="GitHub did not respond in time. Try again.",
                context={"method": method, "url": url},
            )
        except httpx.TransportError as e:
            logger.warning("GitHub %s %s transport error: %s", method, url, e)
            raise RemoteError(
                message=f"Could not reach GitHub: {e}",
                context={"method": method, "url": url},
            )

        status = response.status_code
        if status < 400:
            return response

        detail = _error_message(response)
        context = {"method": method, "url": url, "detail": detail}
        logger.info("GitHub %s %s returned %d: %s", method, url, status, detail)

        if status == 401:
            raise RemoteAuthError(status_code=status, context=context)
        if status == 403:
            if response.headers.get("x-ratelimit-remaining") == "0":
                raise RemoteError(
                    message="GitHub API rate limit exceeded. Wait a while and try again.",
                    status_code=status,
                    context=context,
                )
            raise RemoteAuthError(
                message=(
                    "The access token does not have permission for this repository. "
                    "Use a token with the 'repo' scope."
                ),
                status_code=status,
                context=context,
            )
        if status == 404:
            raise RemoteNotFoundError(status_code=status, context=context)
        if status == 409:
            # GitHub answers 409 for git data reads on a repository with no commits
            raise RemoteNotFoundError(
                message="The repository is empty.",
                status_code=status,
                context=context,
            )
        raise RemoteError(
            message=f"GitHub returned an error ({status}): {detail}",
            status_code=status,
            context=context,
        )

    async def _json(
        self, method: str, url: str, token: str, parse: Callable[[Dict[str, Any]], T], **kwargs
    ) -> T:
        """Send a request and parse the body; a malformed 2xx body is a RemoteError."""
        response = await self._send(method, url, token, **kwargs)
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("GitHub %s %s returned an unexpected body: %r", method, url, e)
            raise RemoteError(
                message="GitHub returned a response that could not be read.",
                status_code=response.status_code,
                context={"method": method, "url": url, "detail": repr(e)},
            ) from e

    # ── Users & Repositories ──────────────────────────────────────────────

    async def get_authenticated_user(self, token: str) -> RemoteUser:
        return await self._json("GET", "/user", token, lambda data: RemoteUser(login=data["login"]))

    async def get_repository(self, token: str, owner: str, repo: str) -> RemoteRepository:
        return await self._json("GET", f"/repos/{owner}/{repo}", token, self._repository)

    async def create_repository(
        self,
        token: str,
        owner: str,
        repo: str,
        private: bool = False,
        auto_init: bool = True,
        description: str = "",
    ) -> RemoteRepository:
        user = await self.get_authenticated_user(token)
        url = "/user/repos" if user.login.lower() == owner.lower() else f"/orgs/{owner}/repos"
        repository = await self._json(
            "POST",
            url,
            token,
            self._repository,
            json={
                "name": repo,
                "private": private,
                "auto_init": auto_init,
                "description": description,
            },
        )
        logger.info("Created GitHub repository %s/%s (private=%s)", owner, repo, private)
        return repository

    @staticmethod
    def _repository(data: Dict[str, Any]) -> RemoteRepository:
        return RemoteRepository(
            owner=data["owner"]["login"],
            name=data["name"],
            default_branch=data.get("default_branch"),
            private=bool(data.get("private", False)),
        )

    # ── Refs ──────────────────────────────────────────────────────────────

    async def get_ref(self, token: str, owner: str, repo: str, branch: str) -> RemoteRef:
        return await self._json(
            "GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}", token, self._ref
        )

    async def create_ref(self, token, owner, repo, branch, sha) -> RemoteRef:
        return await self._json(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            token,
            self._ref,
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def update_ref(self, token, owner, repo, branch, sha, force=False) -> RemoteRef:
        return await self._json(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            token,
            self._ref,
            json={"sha": sha, "force": force},
        )

    @staticmethod
    def _ref(data: Dict[str, Any]) -> RemoteRef:
        return RemoteRef(ref=data["ref"], sha=data["object"]["sha"])

    # ── Commits ───────────────────────────────────────────────────────────

    async def get_commit(self, token, owner, repo, sha) -> RemoteCommit:
        return await self._json(
            "GET", f"/repos/{owner}/{repo}/git/commits/{sha}", token, self._commit
        )

    async def create_commit(self, token, owner, repo, message, tree_sha, parents) -> RemoteCommit:
        return await self._json(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            token,
            self._commit,
            json={"message": message, "tree": tree_sha, "parents": list(parents)},
        )

    @staticmethod
    def _commit(data: Dict[str, Any]) -> RemoteCommit:
        return RemoteCommit(
            sha=data["sha"],
            tree_sha=data["tree"]["sha"],
            parents=[p["sha"] for p in data.get("parents", [])],
            message=data.get("message", ""),
        )

    # ── Trees ─────────────────────────────────────────────────────────────

    async def get_tree(self, token, owner, repo, sha, recursive=True) -> RemoteTree:
        params = {"recursive": "1"} if recursive else None
        return await self._json(
            "GET", f"/repos/{owner}/{repo}/git/trees/{sha}", token, self._tree, params=params
        )

    async def create_tree(
        self,
        token: str,
        owner: str,
        repo: str,
        entries: List[NewTreeEntry],
        base_tree: Optional[str] = None,
    ) -> RemoteTree:
        body: Dict[str, Any] = {"tree": [entry.model_dump() for entry in entries]}
        if base_tree:
            body["base_tree"] = base_tree
        return await self._json(
            "POST", f"/repos/{owner}/{repo}/git/trees", token, self._tree, json=body
        )

    @staticmethod
    def _tree(data: Dict[str, Any]) -> RemoteTree:
        return RemoteTree(
            sha=data["sha"],
            entries=[RemoteTreeEntry.model_validate(item) for item in data.get("tree", [])],
            truncated=bool(data.get("truncated", False)),
        )

    # ── Blobs ─────────────────────────────────────────────────────────────

    async def create_blob(self, token, owner, repo, content: bytes) -> str:
        return await self._json(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            token,
            lambda data: str(data["sha"]),
            json={"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
        )

    async def get_blob(self, token, owner, repo, sha) -> RemoteBlob:
        def parse(data: Dict[str, Any]) -> RemoteBlob:
            return RemoteBlob(
                sha=data.get("sha", sha),
                content=data.get("content"),
                encoding=data.get("encoding"),
                size=data.get("size"),
                download_url=data.get("download_url"),
            )

        return await self._json("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}", token, parse)

    def sends_credential_to(self, url: str) -> bool:
        """Relative URLs resolve against the API root; absolute ones must be on a known host."""
        host = httpx.URL(url).host.lower()
        return not host or host in self.credential_hosts

    async def download(self, token: str, url: str) -> bytes:
        # download_url comes from the response body; the token only goes to GitHub hosts
        trusted = self.sends_credential_to(url)
        if not trusted:
            logger.info("Fetching %s without credentials (host not trusted)", url)
        response = await self._send("GET", url, token, authenticate=trusted)
        return response.content


# Singleton instance — closed by the application lifespan
github_client = GitHubClient()
