"""Publish service performing a safe create-or-update of one repository file."""
import asyncio
import hashlib
import logging
from typing import Awaitable, Callable, List, Optional
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt
)
from devscore.domain.errors import (
    AuthFailure,
    ConflictOrUnknown,
    GitHubAPIError,
    NotFound,
    PermissionDenied,
    RateLimited,
    ValidationError
)
from devscore.domain.github_interface import IGitHubGateway
from devscore.domain.models import PublishResult, WriteAttempt


logger = logging.getLogger(__name__)


def is_retryable(error: BaseException) -> bool:
    """Rate limits, transport failures and 5xx are worth another attempt."""
    if not isinstance(error, GitHubAPIError):
        return False
    if error.status is None or error.status == 429:
        return True
    return not 400 <= error.status < 500


def backoff_seconds(retry_state: RetryCallState) -> float:
    """Server-specified ``retry-after`` for 429, else 2^attempt seconds."""
    error = retry_state.outcome.exception()
    if isinstance(error, RateLimited) and error.status == 429 and error.retry_after is not None:
        return error.retry_after
    return float(2 ** retry_state.attempt_number)


def classify_failure(error: GitHubAPIError) -> GitHubAPIError:
    """Translate the last failure into one user-facing classified error."""
    status = error.status
    if status is None:
        return error
    if status == 401:
        return AuthFailure("Authentication failed. Please check your GitHub access token.", status, error.headers)
    if status == 403:
        if "rate limit" in error.message.lower() or isinstance(error, RateLimited):
            return RateLimited("GitHub API rate limit exceeded. Please try again later.", status, error.headers)
        return PermissionDenied(
            "Permission denied. You may not have write access to this repository.", status, error.headers
        )
    if status == 404:
        return NotFound("Repository not found or you do not have access to it.", status, error.headers)
    if status == 422:
        return ValidationError(
            "Invalid request. The repository may be empty or the file path is invalid.", status, error.headers
        )
    if status == 429:
        return RateLimited("GitHub API rate limit exceeded. Please try again later.", status, error.headers)
    return ConflictOrUnknown(f"GitHub API error ({status}): {error.message}", status, error.headers)


class PublishService:
    """Application service publishing text files to a repository.

    Each attempt re-reads the file's version token before writing, so a
    retry can never silently overwrite a change it has not seen: GitHub
    rejects a stale token instead.
    """

    def __init__(
        self,
        gateway: IGitHubGateway,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """Initialize publish service.

        Args:
            gateway: GitHub API gateway bound to the caller's credential
            max_attempts: Upper bound on write attempts
            sleep: Coroutine used to wait between attempts
        """
        self._gateway = gateway
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def publish_file(
        self,
        owner: str,
        repo: str,
        content: str,
        path: str = "README.md",
        message: str = "Add/Update README.md"
    ) -> PublishResult:
        """Create or update ``path`` in ``owner/repo`` with ``content``.

        Raises:
            ValidationError: Missing owner, repository or content
            GitHubAPIError: Classified failure once retries are exhausted
                or a non-retryable status is returned
        """
        if not owner or not repo or not path:
            raise ValidationError("Missing required parameters: owner, repository or path")
        if not content or not content.strip():
            raise ValidationError("File content cannot be empty")

        content_hash = hashlib.sha256(content.encode("utf-8")).hexdigest()
        attempts: List[WriteAttempt] = []

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception(is_retryable),
            wait=backoff_seconds,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.info(
                        f"Publishing {path} to {owner}/{repo} (attempt {number}/{self._max_attempts})"
                    )
                    version_token: Optional[str] = None
                    try:
                        existing = await self._gateway.get_file_content(owner, repo, path)
                        version_token = existing.sha if existing else None
                        result = await self._gateway.create_or_update_file(
                            owner, repo, path, content, message, version_token
                        )
                    except GitHubAPIError as e:
                        attempts.append(WriteAttempt(path, content_hash, version_token, number, f"failed: {e}"))
                        logger.error(f"Error publishing {path} to {owner}/{repo} (attempt {number}): {e}")
                        raise

                    action = "updated" if version_token else "created"
                    attempts.append(WriteAttempt(path, content_hash, version_token, number, action))
        except GitHubAPIError as e:
            logger.error(f"Failed to publish {path} to {owner}/{repo} after {len(attempts)} attempt(s)")
            classified = classify_failure(e)
            if classified is e:
                raise
            raise classified from e

        logger.info(f"{path} {action} successfully in {owner}/{repo}")
        return PublishResult(
            result=result,
            action=action,
            repository_url=f"https://github.com/{owner}/{repo}",
            file_url=f"https://github.com/{owner}/{repo}/blob/HEAD/{path}",
            attempts=tuple(attempts)
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        logger.info(
            f"Waiting {retry_state.next_action.sleep:.0f}s before retry attempt "
            f"{retry_state.attempt_number + 1}"
        )
