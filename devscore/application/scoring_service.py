"""Scoring service turning a GitHub footprint into scores and analyses."""
import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from devscore.application import factors
from devscore.application.analytics import (
    build_contribution_calendar,
    clamp_calendar_year,
    heuristic_trends,
    language_distribution,
    market_trend_value
)
from devscore.domain.cache_interface import ICacheStore
from devscore.domain.errors import GitHubAPIError
from devscore.domain.github_interface import IGitHubGateway
from devscore.domain.models import (
    ActivityEvent,
    ContributionCalendar,
    LanguageDistributionEntry,
    ProfileScoreBreakdown,
    RepositoryAnalysis,
    RepositorySummary,
    ScoringWeights,
    TechnologyTrend,
    TrendPoint,
    round_half_up,
    round_one_decimal
)


logger = logging.getLogger(__name__)

PROFILE_SCORE_TTL = 3600
ANALYSIS_TTL = 1800
MARKET_TRENDS_TTL = 3600
MAX_LANGUAGE_REPOSITORIES = 30

TrendModel = Callable[[Sequence[LanguageDistributionEntry], datetime], List[TechnologyTrend]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LanguageFetch:
    """Outcome of fetching one repository's language bytes."""
    repository: RepositorySummary
    languages: Optional[Dict[str, int]] = None
    error: Optional[GitHubAPIError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ScoringService:
    """Application service computing profile scores and derived analyses.

    Orchestrates the GitHub gateway, the cache and the pure calculators.
    Results are always fully recomputed and overwritten in the cache.
    """

    def __init__(
        self,
        gateway: IGitHubGateway,
        cache: ICacheStore,
        weights: Optional[ScoringWeights] = None,
        trend_model: TrendModel = heuristic_trends,
        clock: Callable[[], datetime] = _utcnow
    ):
        """Initialize the scoring service.

        Args:
            gateway: GitHub API gateway bound to the caller's credential
            cache: Best-effort result cache
            weights: Factor weights (must sum to 1.0)
            trend_model: Projection used for technology trends
            clock: Returns the current timezone-aware datetime
        """
        self._gateway = gateway
        self._cache = cache
        self._weights = weights or ScoringWeights()
        self._trend_model = trend_model
        self._clock = clock

    async def _cached(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[Any]],
        encode: Callable[[Any], Any],
        decode: Callable[[Any], Any]
    ) -> Any:
        async def produce() -> Any:
            return encode(await compute())

        payload = await self._cache.get_or_set(key, produce, ttl)
        try:
            return decode(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e!r}")

        payload = await produce()
        await self._cache.set(key, payload, ttl)
        return decode(payload)

    # Profile score

    async def calculate_profile_score(self, username: str) -> ProfileScoreBreakdown:
        """Weighted composite score over four independent factors."""
        return await self._cached(
            f"profile-score:{username}",
            PROFILE_SCORE_TTL,
            lambda: self._compute_profile_score(username),
            lambda breakdown: breakdown.to_dict(),
            ProfileScoreBreakdown.from_dict
        )

    async def _fetch_events(self, username: str) -> Optional[List[ActivityEvent]]:
        """Recent public events, or None when the stream is unavailable."""
        try:
            return await self._gateway.get_user_events(username, per_page=100)
        except GitHubAPIError as e:
            logger.warning(f"Event stream unavailable for {username}, using neutral consistency: {e}")
            return None

    async def _compute_profile_score(self, username: str) -> ProfileScoreBreakdown:
        logger.info(f"Calculating profile score for {username}")
        now = self._clock()

        try:
            user = await self._gateway.get_user(username)
            repositories = await self._gateway.get_user_repositories(
                username, type="owner", sort="updated", per_page=100
            )
        except GitHubAPIError as e:
            logger.error(f"Error calculating profile score for {username}: {e}")
            raise

        events: Optional[List[ActivityEvent]] = []
        if repositories:
            events = await self._fetch_events(username)

        quality = factors.repository_quality(repositories, now)
        consistency = factors.contribution_consistency(events, now)
        engagement = factors.community_engagement(user, repositories)
        documentation = factors.documentation_completeness(repositories)

        return ProfileScoreBreakdown(
            overall_score=factors.overall_score(self._weights, quality, consistency, engagement, documentation),
            repository_quality=quality,
            contribution_consistency=consistency,
            community_engagement=engagement,
            documentation_completeness=documentation,
            code_quality=round_half_up((quality.score + consistency.score) / 2),
            weights=self._weights
        )

    # Repository analysis

    async def analyze_repositories(self, username: str, include_private: bool = False) -> RepositoryAnalysis:
        """Aggregate counts, histogram and highlights over a user's repositories."""
        key = f"repo-analysis:{username}:all" if include_private else f"repo-analysis:{username}"
        return await self._cached(
            key,
            ANALYSIS_TTL,
            lambda: self._compute_repository_analysis(username, include_private),
            lambda analysis: analysis.to_dict(),
            RepositoryAnalysis.from_dict
        )

    async def _compute_repository_analysis(self, username: str, include_private: bool) -> RepositoryAnalysis:
        if include_private:
            repositories = await self._gateway.get_authenticated_user_repositories(
                type="all", sort="updated", per_page=100
            )
        else:
            repositories = await self._gateway.get_user_repositories(
                username, type="owner", sort="updated", per_page=100
            )
        return summarize_repositories(repositories)

    # Language distribution

    async def get_language_distribution(self, username: str) -> List[LanguageDistributionEntry]:
        """Byte-weighted language shares across recently updated repositories."""
        return await self._cached(
            f"language-distribution:{username}",
            ANALYSIS_TTL,
            lambda: self._compute_language_distribution(username),
            lambda entries: [entry.to_dict() for entry in entries],
            lambda payload: [LanguageDistributionEntry(**item) for item in payload]
        )

    async def _fetch_languages(self, username: str, repository: RepositorySummary) -> LanguageFetch:
        try:
            languages = await self._gateway.get_repository_languages(
                repository.owner or username, repository.name
            )
        except GitHubAPIError as e:
            return LanguageFetch(repository=repository, error=e)
        return LanguageFetch(repository=repository, languages=languages)

    async def _compute_language_distribution(self, username: str) -> List[LanguageDistributionEntry]:
        repositories = await self._gateway.get_user_repositories(
            username, type="owner", sort="updated", per_page=100
        )
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        selected = sorted(
            repositories,
            key=lambda repo: repo.updated_at or oldest,
            reverse=True
        )[:MAX_LANGUAGE_REPOSITORIES]

        totals: Dict[str, int] = {}
        for repository in selected:
            outcome = await self._fetch_languages(username, repository)
            if not outcome.ok:
                logger.warning(f"Skipping languages of {repository.full_name}: {outcome.error}")
                continue
            for language, size in outcome.languages.items():
                totals[language] = totals.get(language, 0) + size

        return language_distribution(totals)

    # Technology trends

    async def get_technology_trends(self, username: str) -> List[TechnologyTrend]:
        """Trend series for the user's top three languages."""
        return await self._cached(
            f"technology-trends:{username}",
            ANALYSIS_TTL,
            lambda: self._compute_technology_trends(username),
            lambda trends: [trend.to_dict() for trend in trends],
            lambda payload: [TechnologyTrend.from_dict(item) for item in payload]
        )

    async def _compute_technology_trends(self, username: str) -> List[TechnologyTrend]:
        distribution = await self.get_language_distribution(username)
        return self._trend_model(distribution, self._clock())

    # Contribution calendar

    async def get_contribution_calendar(self, username: str, year: Optional[int] = None) -> ContributionCalendar:
        """Full-year daily contributions with streaks and average."""
        now = self._clock()
        year = clamp_calendar_year(year if year is not None else now.year, now)
        return await self._cached(
            f"contribution-calendar:{username}:{year}",
            ANALYSIS_TTL,
            lambda: self._compute_contribution_calendar(username, year),
            lambda calendar: calendar.to_dict(),
            ContributionCalendar.from_dict
        )

    async def _compute_contribution_calendar(self, username: str, year: int) -> ContributionCalendar:
        days = await self._gateway.get_contribution_calendar(username, year)
        return build_contribution_calendar(year, days)

    # Market trends

    async def get_language_market_trends(self, technology: str, months: int = 6) -> List[TrendPoint]:
        """Monthly popularity of a language based on newly created repositories."""
        return await self._cached(
            f"market-trends:{technology.lower()}:{months}",
            MARKET_TRENDS_TTL,
            lambda: self._compute_market_trends(technology, months),
            lambda points: [point.to_dict() for point in points],
            lambda payload: [TrendPoint(**item) for item in payload]
        )

    async def _compute_market_trends(self, technology: str, months: int) -> List[TrendPoint]:
        now = self._clock()
        points = []
        for offset in range(months - 1, -1, -1):
            start, end = _month_bounds(now, offset)
            query = f"language:{technology} created:{start.isoformat()}..{end.isoformat()}"
            try:
                result = await self._gateway.search_repositories(query, per_page=1)
            except GitHubAPIError as e:
                logger.warning(f"Market trend search failed for {technology} {start:%Y-%m}: {e}")
                points.append(TrendPoint(month=f"{start:%b}", value=0))
                continue
            points.append(TrendPoint(month=f"{start:%b}", value=market_trend_value(result.total_count)))
        return points

    async def invalidate(self, username: str) -> bool:
        """Drop every cached analysis of one user."""
        keys = [
            f"profile-score:{username}",
            f"repo-analysis:{username}",
            f"repo-analysis:{username}:all",
            f"language-distribution:{username}",
            f"technology-trends:{username}"
        ]
        removed = [await self._cache.delete(key) for key in keys]
        flushed = await self._cache.flush(f"contribution-calendar:{username}:*")
        return any(removed) or flushed


def _month_bounds(now: datetime, months_back: int) -> Tuple[date, date]:
    """First and last day of the month ``months_back`` months before ``now``."""
    year, month = divmod(now.year * 12 + (now.month - 1) - months_back, 12)
    start = date(year, month + 1, 1)
    return start, start.replace(day=calendar.monthrange(start.year, start.month)[1])


def summarize_repositories(repositories: Sequence[RepositorySummary]) -> RepositoryAnalysis:
    """Aggregate a repository list into counts, histogram and highlights."""
    total = len(repositories)

    languages: Dict[str, int] = {}
    topics: Dict[str, None] = {}
    for repo in repositories:
        if repo.language:
            languages[repo.language] = languages.get(repo.language, 0) + 1
        for topic in repo.topics:
            topics.setdefault(topic, None)

    most_starred = None
    most_recent = None
    for repo in repositories:
        if most_starred is None or repo.stars > most_starred.stars:
            most_starred = repo
        if most_recent is None or (
            repo.updated_at and (most_recent.updated_at is None or repo.updated_at > most_recent.updated_at)
        ):
            most_recent = repo

    total_stars = sum(repo.stars for repo in repositories)
    described = sum(1 for repo in repositories if repo.description)
    return RepositoryAnalysis(
        total_repos=total,
        total_stars=total_stars,
        total_forks=sum(repo.forks for repo in repositories),
        total_size=sum(repo.size for repo in repositories),
        languages=languages,
        topics=tuple(topics),
        most_starred_repo=most_starred,
        most_recent_repo=most_recent,
        readme_coverage=round_half_up(described / total * 100) if total else 0,
        avg_repo_quality=round_one_decimal(total_stars / total) if total else 0.0
    )
