"""GitHub REST and GraphQL gateway with rate limiting and classified errors."""
import asyncio
import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
from urllib.parse import quote
import aiohttp
from gql import gql, Client
from gql.transport.aiohttp import AIOHTTPTransport
from gql.transport.exceptions import TransportQueryError, TransportServerError
from devscore.domain.errors import (
    AuthFailure,
    ConflictOrUnknown,
    GitHubAPIError,
    NetworkFailure,
    NotFound,
    PermissionDenied,
    RateLimited,
    RequestTimeout,
    ValidationError
)
from devscore.domain.github_interface import IGitHubGateway
from devscore.domain.models import (
    ActivityEvent,
    ContributionDay,
    FileContent,
    RateLimitSnapshot,
    RepositoryAccess,
    RepositorySummary,
    SearchResult,
    UserProfile
)
from devscore.infrastructure.settings import Settings


logger = logging.getLogger(__name__)

USER_AGENT = "devscore/1.0"


@dataclass(frozen=True)
class HttpResponse:
    """Status, lower-cased headers and decoded JSON body of one response."""
    status: int
    headers: Dict[str, str]
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _lower_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    return {key.lower(): value for key, value in (headers or {}).items()}


def _parse_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def classify_response(response: HttpResponse) -> GitHubAPIError:
    """Map a failed response onto the error taxonomy."""
    status = response.status
    headers = response.headers
    body = response.body if isinstance(response.body, dict) else {}
    message = body.get("message") or f"GitHub API returned status {status}"

    if status == 401:
        return AuthFailure(message, status, headers)
    if status in (403, 429):
        exhausted = headers.get("x-ratelimit-remaining") == "0"
        if status == 429 or exhausted or "rate limit" in message.lower():
            reset = _parse_number(headers.get("x-ratelimit-reset"))
            return RateLimited(
                message,
                status,
                headers,
                retry_after=_parse_number(headers.get("retry-after")),
                reset=int(reset) if reset is not None else None
            )
        return PermissionDenied(message, status, headers)
    if status == 404:
        return NotFound(message, status, headers)
    if status == 422:
        return ValidationError(message, status, headers)
    return ConflictOrUnknown(message, status, headers)


class GitHubGateway(IGitHubGateway):
    """GitHub API client owning the rate-limit contract for one credential.

    Implements the IGitHubGateway port. Rate-limit state lives on the
    instance, so separate sessions never share limit tracking.
    """

    CONTRIBUTION_CALENDAR_QUERY = gql("""
        query ContributionCalendar($login: String!, $from: DateTime!, $to: DateTime!) {
            user(login: $login) {
                contributionsCollection(from: $from, to: $to) {
                    contributionCalendar {
                        totalContributions
                        weeks {
                            contributionDays {
                                date
                                contributionCount
                            }
                        }
                    }
                }
            }
        }
    """)

    def __init__(
        self,
        access_token: Optional[str] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time
    ):
        """Initialize the gateway.

        Args:
            access_token: Opaque bearer credential; anonymous when omitted
            settings: API endpoints, version and timeouts
            sleep: Coroutine used for the rate-limit wait
            clock: Returns the current epoch time in seconds
        """
        self._access_token = access_token
        self._settings = settings or Settings()
        self._sleep = sleep
        self._clock = clock
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limit: Optional[RateLimitSnapshot] = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self._settings.github_api_version,
            "User-Agent": USER_AGENT
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _init_session(self) -> None:
        """Initialize the HTTP session (lazy initialization)."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self._settings.request_timeout)
            )

    def get_rate_limit_snapshot(self) -> Optional[RateLimitSnapshot]:
        return self._rate_limit

    def _record_rate_limit(self, headers: Mapping[str, str]) -> None:
        snapshot = RateLimitSnapshot.from_headers(headers)
        if snapshot is not None:
            self._rate_limit = snapshot
            logger.debug(
                f"Rate limit remaining: {snapshot.remaining}/{snapshot.limit}, "
                f"resets at: {snapshot.reset}"
            )

    def _rate_limit_wait(self, response: HttpResponse) -> Optional[float]:
        """Seconds to wait before retrying an exhausted request, if worth it."""
        if response.status not in (403, 429):
            return None
        if response.headers.get("x-ratelimit-remaining") != "0":
            return None
        reset = _parse_number(response.headers.get("x-ratelimit-reset"))
        if reset is None:
            return None

        wait = reset - self._clock()
        if 0 < wait < self._settings.max_rate_limit_wait:
            return wait
        logger.warning(f"Rate limit exceeded; reset at {int(reset)} is outside the wait window")
        return None

    async def _call(
        self,
        description: str,
        send: Callable[[], Awaitable[HttpResponse]]
    ) -> HttpResponse:
        """Issue a request, retrying exactly once after a rate-limit reset.

        Raises:
            GitHubAPIError: Classified failure of the (last) response
        """
        response = await send()
        self._record_rate_limit(response.headers)
        if response.ok:
            return response

        error = classify_response(response)
        wait = self._rate_limit_wait(response)
        if wait is None:
            logger.error(f"GitHub API error: {response.status} {description}: {error.message}")
            raise error

        logger.warning(f"Rate limit exhausted. Waiting {wait:.1f} seconds before retrying {description}")
        await self._sleep(wait)

        response = await send()
        self._record_rate_limit(response.headers)
        if response.ok:
            return response

        error = classify_response(response)
        logger.error(f"GitHub API error after rate-limit retry: {response.status} {description}: {error.message}")
        raise error

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> HttpResponse:
        """Perform one REST request and capture its response."""
        await self._init_session()
        url = f"{self._settings.github_api_base_url}{path}"
        query = {key: str(value) for key, value in (params or {}).items()}
        logger.info(f"GitHub API request: {method} {path}")

        try:
            async with self._session.request(method, url, params=query or None, json=payload) as resp:
                text = await resp.text()
                body = None
                if text:
                    try:
                        body = json.loads(text)
                    except ValueError:
                        body = {"message": text}
                return HttpResponse(resp.status, _lower_headers(resp.headers), body)
        except asyncio.TimeoutError as e:
            raise RequestTimeout(
                f"{method} {path} timed out after {self._settings.request_timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        response = await self._call(
            f"{method} {path}",
            lambda: self._send(method, path, params=params, payload=payload)
        )
        return response.body

    async def _send_graphql(self, document: Any, variables: Dict[str, Any]) -> HttpResponse:
        """Execute one GraphQL document and capture the transport's response."""
        transport = AIOHTTPTransport(
            url=self._settings.github_graphql_url,
            headers=self._headers(),
            timeout=int(self._settings.request_timeout)
        )
        logger.info(f"GitHub GraphQL request: {sorted(variables)}")

        try:
            async with Client(transport=transport, fetch_schema_from_transport=False) as session:
                data = await session.execute(document, variable_values=variables)
            return HttpResponse(200, _lower_headers(transport.response_headers), {"data": data})
        except TransportServerError as e:
            return HttpResponse(
                e.code or 500,
                _lower_headers(transport.response_headers),
                {"message": str(e)}
            )
        except TransportQueryError as e:
            headers = _lower_headers(transport.response_headers)
            error_types = {error.get("type") for error in (e.errors or []) if isinstance(error, dict)}
            if "NOT_FOUND" in error_types:
                raise NotFound(str(e), 404, headers) from e
            if "RATE_LIMITED" in error_types:
                raise RateLimited(str(e), None, headers) from e
            raise ConflictOrUnknown(str(e), None, headers) from e
        except asyncio.TimeoutError as e:
            raise RequestTimeout(f"GraphQL request timed out after {self._settings.request_timeout}s") from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(f"GraphQL request failed: {e}") from e

    # User methods

    async def get_user(self, username: Optional[str] = None) -> UserProfile:
        path = f"/users/{quote(username)}" if username else "/user"
        return UserProfile.from_api(await self._request("GET", path))

    async def get_user_repositories(
        self,
        username: str,
        type: str = "owner",
        sort: str = "updated",
        direction: str = "desc",
        per_page: int = 100,
        page: int = 1
    ) -> List[RepositorySummary]:
        params = {"type": type, "sort": sort, "direction": direction, "per_page": per_page, "page": page}
        body = await self._request("GET", f"/users/{quote(username)}/repos", params=params)
        return [RepositorySummary.from_api(item) for item in body or []]

    async def get_authenticated_user_repositories(
        self,
        type: str = "all",
        sort: str = "updated",
        direction: str = "desc",
        per_page: int = 100,
        page: int = 1
    ) -> List[RepositorySummary]:
        params = {"type": type, "sort": sort, "direction": direction, "per_page": per_page, "page": page}
        body = await self._request("GET", "/user/repos", params=params)
        return [RepositorySummary.from_api(item) for item in body or []]

    async def get_user_events(
        self,
        username: str,
        per_page: int = 100,
        page: int = 1
    ) -> List[ActivityEvent]:
        params = {"per_page": per_page, "page": page}
        body = await self._request("GET", f"/users/{quote(username)}/events", params=params)
        return [ActivityEvent.from_api(item) for item in body or []]

    # Repository methods

    async def get_repository(self, owner: str, repo: str) -> RepositorySummary:
        body = await self._request("GET", f"/repos/{quote(owner)}/{quote(repo)}")
        return RepositorySummary.from_api(body)

    async def get_repository_languages(self, owner: str, repo: str) -> Dict[str, int]:
        body = await self._request("GET", f"/repos/{quote(owner)}/{quote(repo)}/languages")
        return {language: int(size) for language, size in (body or {}).items()}

    async def get_repository_readme(self, owner: str, repo: str) -> Optional[FileContent]:
        try:
            body = await self._request("GET", f"/repos/{quote(owner)}/{quote(repo)}/readme")
        except NotFound:
            return None
        return self._file_content(body)

    async def validate_repository_access(self, owner: str, repo: str) -> RepositoryAccess:
        try:
            repository = await self.get_repository(owner, repo)
        except NotFound:
            return RepositoryAccess(
                has_access=False,
                has_write_access=False,
                error="Repository not found or you do not have access to it"
            )
        except PermissionDenied:
            return RepositoryAccess(
                has_access=False,
                has_write_access=False,
                error="You do not have sufficient permissions to access this repository"
            )

        permissions = repository.permissions
        has_write_access = bool(permissions.get("push") or permissions.get("admin"))
        return RepositoryAccess(
            has_access=True,
            has_write_access=has_write_access,
            repository=repository,
            error=None if has_write_access else "You do not have write access to this repository"
        )

    # Search methods

    async def search_repositories(
        self,
        query: str,
        sort: str = "stars",
        order: str = "desc",
        per_page: int = 30,
        page: int = 1
    ) -> SearchResult:
        params = {"q": query, "sort": sort, "order": order, "per_page": per_page, "page": page}
        body = await self._request("GET", "/search/repositories", params=params) or {}
        return SearchResult(
            total_count=body.get("total_count", 0),
            items=tuple(RepositorySummary.from_api(item) for item in body.get("items") or [])
        )

    # Content methods

    @staticmethod
    def _file_content(body: Mapping[str, Any]) -> FileContent:
        content = body.get("content")
        encoding = body.get("encoding")
        if content and encoding == "base64":
            content = base64.b64decode(content).decode("utf-8", errors="replace")
        return FileContent(path=body.get("path", ""), sha=body["sha"], content=content, encoding=encoding)

    async def get_file_content(self, owner: str, repo: str, path: str) -> Optional[FileContent]:
        try:
            body = await self._request("GET", f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}")
        except NotFound:
            return None
        if isinstance(body, list):
            raise ValidationError(f"{path} is a directory, not a file", 422)
        return self._file_content(body)

    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii")
        }
        if sha:
            payload["sha"] = sha
        return await self._request(
            "PUT",
            f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}",
            payload=payload
        )

    # GraphQL: contributions calendar for a given user and year

    async def get_contribution_calendar(self, username: str, year: int) -> List[ContributionDay]:
        variables = {
            "login": username,
            "from": f"{year}-01-01T00:00:00Z",
            "to": f"{year}-12-31T23:59:59Z"
        }
        response = await self._call(
            f"GraphQL contributionsCollection {username} {year}",
            lambda: self._send_graphql(self.CONTRIBUTION_CALENDAR_QUERY, variables)
        )

        user = (response.body.get("data") or {}).get("user")
        if user is None:
            raise NotFound(f"GitHub user {username} not found", 404)
        calendar = user["contributionsCollection"]["contributionCalendar"]
        return [
            ContributionDay(date=day["date"], count=day["contributionCount"])
            for week in calendar.get("weeks") or []
            for day in week.get("contributionDays") or []
        ]

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
