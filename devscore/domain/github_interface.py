"""GitHub API interface (port) for fetching and publishing platform data.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
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


class IGitHubGateway(ABC):
    """Abstract interface for GitHub API operations.

    Each accessor performs one network call. Soft misses return None
    instead of raising.
    """

    @abstractmethod
    async def get_user(self, username: Optional[str] = None) -> UserProfile:
        """Fetch a user profile, or the authenticated user when no name is given."""
        pass

    @abstractmethod
    async def get_user_repositories(
        self,
        username: str,
        type: str = "owner",
        sort: str = "updated",
        direction: str = "desc",
        per_page: int = 100,
        page: int = 1
    ) -> List[RepositorySummary]:
        pass

    @abstractmethod
    async def get_authenticated_user_repositories(
        self,
        type: str = "all",
        sort: str = "updated",
        direction: str = "desc",
        per_page: int = 100,
        page: int = 1
    ) -> List[RepositorySummary]:
        pass

    @abstractmethod
    async def get_repository(self, owner: str, repo: str) -> RepositorySummary:
        pass

    @abstractmethod
    async def get_repository_languages(self, owner: str, repo: str) -> Dict[str, int]:
        """Fetch the byte count per language for one repository."""
        pass

    @abstractmethod
    async def get_user_events(
        self,
        username: str,
        per_page: int = 100,
        page: int = 1
    ) -> List[ActivityEvent]:
        pass

    @abstractmethod
    async def get_repository_readme(self, owner: str, repo: str) -> Optional[FileContent]:
        """Fetch the repository README, or None when it has none."""
        pass

    @abstractmethod
    async def get_file_content(self, owner: str, repo: str, path: str) -> Optional[FileContent]:
        """Fetch a file with its version token, or None when it does not exist."""
        pass

    @abstractmethod
    async def search_repositories(
        self,
        query: str,
        sort: str = "stars",
        order: str = "desc",
        per_page: int = 30,
        page: int = 1
    ) -> SearchResult:
        pass

    @abstractmethod
    async def get_contribution_calendar(self, username: str, year: int) -> List[ContributionDay]:
        """Fetch per-day contribution counts for one calendar year.

        The returned list may be sparse; callers fill missing days.
        """
        pass

    @abstractmethod
    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a file, or update it when ``sha`` names its current version."""
        pass

    @abstractmethod
    async def validate_repository_access(self, owner: str, repo: str) -> RepositoryAccess:
        """Report whether the credential can read and write a repository."""
        pass

    @abstractmethod
    def get_rate_limit_snapshot(self) -> Optional[RateLimitSnapshot]:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
