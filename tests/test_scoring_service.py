"""Tests for the scoring service against a mocked gateway and a fake Redis."""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from devscore.application.scoring_service import MAX_LANGUAGE_REPOSITORIES, ScoringService
from devscore.domain.errors import NetworkFailure, NotFound
from devscore.domain.github_interface import IGitHubGateway
from devscore.domain.models import (
    ContributionDay,
    LanguageDistributionEntry,
    SearchResult,
    TechnologyTrend,
    TrendPoint,
    UserProfile
)
from devscore.infrastructure.redis_cache import ResilientCache


@pytest.fixture
def gateway():
    mock = MagicMock(spec=IGitHubGateway)
    mock.get_user = AsyncMock(return_value=UserProfile(login="octocat"))
    mock.get_user_repositories = AsyncMock(return_value=[])
    mock.get_authenticated_user_repositories = AsyncMock(return_value=[])
    mock.get_user_events = AsyncMock(return_value=[])
    mock.get_repository_languages = AsyncMock(return_value={})
    mock.get_contribution_calendar = AsyncMock(return_value=[])
    mock.search_repositories = AsyncMock(return_value=SearchResult(total_count=0))
    return mock


@pytest.fixture
def service(gateway, cache, now):
    return ScoringService(gateway, cache, clock=lambda: now)


async def test_profile_score_for_user_without_repositories(service, gateway):
    """Test that an empty repository set scores zero without fetching events."""
    breakdown = await service.calculate_profile_score("ghost")

    assert breakdown.overall_score == 0
    assert breakdown.repository_quality.score == 0
    assert breakdown.contribution_consistency.score == 0
    assert breakdown.community_engagement.score == 0
    assert breakdown.documentation_completeness.score == 0
    assert breakdown.code_quality == 0
    gateway.get_user_events.assert_not_awaited()


async def test_profile_score_with_unavailable_events(service, gateway, make_repo):
    """Test the neutral consistency fallback when the event stream fails."""
    gateway.get_user_repositories.return_value = [
        make_repo(stars=10, forks=2, language="Python", description="x", topics=("a",))
    ]
    gateway.get_user_events.side_effect = NetworkFailure("connection reset")

    breakdown = await service.calculate_profile_score("octocat")

    assert breakdown.repository_quality.score == 54
    assert breakdown.contribution_consistency.score == 50
    assert breakdown.community_engagement.score == 0
    assert breakdown.documentation_completeness.score == 0
    assert breakdown.overall_score == 29
    assert breakdown.code_quality == 52


async def test_profile_score_is_cached(service, gateway, make_repo, cache):
    gateway.get_user_repositories.return_value = [make_repo(stars=3, language="Go")]

    first = await service.calculate_profile_score("octocat")
    second = await service.calculate_profile_score("octocat")

    assert first == second
    assert gateway.get_user.await_count == 1
    assert 0 < await cache.get_ttl("profile-score:octocat") <= 3600


async def test_profile_score_propagates_gateway_errors(service, gateway, cache):
    gateway.get_user.side_effect = NotFound("Not Found", 404)

    with pytest.raises(NotFound):
        await service.calculate_profile_score("nobody")

    assert await cache.exists("profile-score:nobody") is False


async def test_invalidate_forces_recompute(service, gateway):
    await service.calculate_profile_score("octocat")

    assert await service.invalidate("octocat") is True
    await service.calculate_profile_score("octocat")

    assert gateway.get_user.await_count == 2


async def test_analyze_repositories(service, gateway, make_repo):
    gateway.get_user_repositories.return_value = [
        make_repo(name="api", stars=5, forks=1, size=100, language="Python", topics=("web", "api"),
                  description="REST API"),
        make_repo(name="cli", stars=9, forks=0, size=50, language="Python", topics=("api", "cli")),
        make_repo(name="site", stars=9, language="HTML"),
    ]

    analysis = await service.analyze_repositories("octocat")

    assert analysis.total_repos == 3
    assert analysis.total_stars == 23
    assert analysis.total_forks == 1
    assert analysis.total_size == 150
    assert analysis.languages == {"Python": 2, "HTML": 1}
    assert analysis.topics == ("web", "api", "cli")
    assert analysis.most_starred_repo.name == "cli"
    assert analysis.readme_coverage == 33
    assert analysis.avg_repo_quality == 7.7


async def test_analyze_repositories_including_private(service, gateway, make_repo):
    gateway.get_authenticated_user_repositories.return_value = [make_repo(name="secret")]

    analysis = await service.analyze_repositories("octocat", include_private=True)

    assert analysis.total_repos == 1
    gateway.get_user_repositories.assert_not_awaited()


async def test_language_distribution_skips_failed_repositories(service, gateway, make_repo):
    """Test that one failing repository does not fail the whole distribution."""
    gateway.get_user_repositories.return_value = [
        make_repo(name="alpha"), make_repo(name="broken"), make_repo(name="gamma")
    ]
    languages = {
        "alpha": {"Python": 1000, "Shell": 250},
        "gamma": {"Python": 750},
    }

    async def fetch_languages(owner, repo):
        if repo == "broken":
            raise NetworkFailure("connection reset")
        return languages[repo]

    gateway.get_repository_languages.side_effect = fetch_languages

    distribution = await service.get_language_distribution("octocat")

    assert distribution == [
        LanguageDistributionEntry("Python", 1750, 87.5),
        LanguageDistributionEntry("Shell", 250, 12.5),
    ]


async def test_language_distribution_uses_most_recent_repositories(service, gateway, make_repo, now):
    repos = [make_repo(name=f"r{i}", updated_at=now - timedelta(days=i)) for i in range(35)]
    gateway.get_user_repositories.return_value = list(reversed(repos))
    gateway.get_repository_languages.return_value = {"Python": 10}

    await service.get_language_distribution("octocat")

    fetched = {call.args[1] for call in gateway.get_repository_languages.await_args_list}
    assert len(fetched) == MAX_LANGUAGE_REPOSITORIES
    assert fetched == {f"r{i}" for i in range(MAX_LANGUAGE_REPOSITORIES)}


async def test_technology_trends_use_injected_model(gateway, cache, make_repo, now):
    gateway.get_user_repositories.return_value = [make_repo(name="alpha")]
    gateway.get_repository_languages.return_value = {"Rust": 100}
    seen = []

    def trend_model(distribution, moment):
        seen.append((distribution, moment))
        return [TechnologyTrend("Rust", "rising", 90, 10, (TrendPoint("Oct", 90),))]

    service = ScoringService(gateway, cache, trend_model=trend_model, clock=lambda: now)

    trends = await service.get_technology_trends("octocat")

    assert trends == [TechnologyTrend("Rust", "rising", 90, 10, (TrendPoint("Oct", 90),))]
    assert seen == [([LanguageDistributionEntry("Rust", 100, 100.0)], now)]


async def test_contribution_calendar_clamps_year(service, gateway):
    gateway.get_contribution_calendar.return_value = [ContributionDay("2008-03-01", 4)]

    calendar = await service.get_contribution_calendar("octocat", 2001)

    gateway.get_contribution_calendar.assert_awaited_once_with("octocat", 2008)
    assert calendar.year == 2008
    assert len(calendar.daily) == 366
    assert calendar.total == 4
    assert calendar.longest_streak == 1


async def test_market_trends_tolerate_failed_months(service, gateway):
    """Test that a failed month search reports zero instead of failing."""
    gateway.search_repositories.side_effect = [
        SearchResult(total_count=1000),
        SearchResult(total_count=1000),
        NetworkFailure("connection reset"),
        SearchResult(total_count=1000),
        SearchResult(total_count=1000),
        SearchResult(total_count=1000),
    ]

    points = await service.get_language_market_trends("Python")

    assert [point.month for point in points] == ["May", "Jun", "Jul", "Aug", "Sep", "Oct"]
    assert [point.value for point in points] == [60, 60, 0, 60, 60, 60]
    first_query = gateway.search_repositories.await_args_list[0].args[0]
    assert first_query == "language:Python created:2026-05-01..2026-05-31"


async def test_scores_are_computed_when_cache_is_down(gateway, settings, make_repo, now):
    """Test that a dead cache degrades to recomputation instead of failing."""
    client = MagicMock()
    client.get = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.set = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.aclose = AsyncMock()
    cache = ResilientCache(settings, client=client)
    service = ScoringService(gateway, cache, clock=lambda: now)
    gateway.get_user_repositories.return_value = [make_repo(stars=10, language="Python")]

    first = await service.calculate_profile_score("octocat")
    second = await service.calculate_profile_score("octocat")

    assert first == second
    assert gateway.get_user.await_count == 2
    assert cache.is_healthy() is False


async def test_malformed_cached_score_is_recomputed(service, gateway, make_repo, cache):
    """Test that a stale payload under the score key is treated as a miss."""
    await cache.set("profile-score:octocat", {"overall_score": 10})
    gateway.get_user_repositories.return_value = [
        make_repo(stars=10, forks=2, language="Python", description="x", topics=("a",))
    ]
    gateway.get_user_events.side_effect = NetworkFailure("connection reset")

    breakdown = await service.calculate_profile_score("octocat")

    assert breakdown.overall_score == 29
    assert gateway.get_user.await_count == 1
    assert (await cache.get("profile-score:octocat"))["overall_score"] == 29


async def test_malformed_cached_distribution_is_recomputed(service, gateway, make_repo, cache):
    await cache.set("language-distribution:octocat", {"Python": "most"})
    gateway.get_user_repositories.return_value = [make_repo(name="alpha")]
    gateway.get_repository_languages.return_value = {"Go": 10}

    distribution = await service.get_language_distribution("octocat")

    assert distribution == [LanguageDistributionEntry("Go", 10, 100.0)]
    assert await cache.get("language-distribution:octocat") == [
        {"language": "Go", "bytes": 10, "percentage": 100.0}
    ]
