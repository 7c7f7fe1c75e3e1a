"""Tests for the pure factor calculators."""
from datetime import datetime, timedelta, timezone
import itertools
import pytest
from devscore.application import factors
from devscore.domain.models import ActivityEvent, FactorScore, ScoringWeights, UserProfile


def test_repository_quality_single_curated_repo(make_repo, now):
    """Test the documented example: one starred, described, tagged repo."""
    repo = make_repo(stars=10, forks=2, language="Python", description="x", topics=("a",), is_fork=False)

    result = factors.repository_quality([repo], now)

    assert result.factors == {
        "avg_stars_per_repo": 10.0,
        "repo_diversity": 10,
        "recent_activity": 100,
        "code_quality_indicators": 100,
    }
    assert result.score == 54


def test_repository_quality_stale_and_forked(make_repo, now):
    """Test that forks and stale repos lower the quality factor."""
    repos = [
        make_repo(stars=1, language="Go", description="tool", topics=("cli",), is_fork=True,
                  updated_at=now - timedelta(days=400)),
        make_repo(stars=0, language="Rust", updated_at=now - timedelta(days=10)),
    ]

    result = factors.repository_quality(repos, now)

    assert result.factors["avg_stars_per_repo"] == 0.5
    assert result.factors["repo_diversity"] == 20
    assert result.factors["recent_activity"] == 50
    assert result.factors["code_quality_indicators"] == 0
    # 1*0.3 + 20*0.25 + 50*0.25 + 0 = 17.8
    assert result.score == 18


def test_months_before_clamps_day():
    moment = datetime(2026, 8, 31, tzinfo=timezone.utc)

    assert factors.months_before(moment, 6) == datetime(2026, 2, 28, tzinfo=timezone.utc)
    assert factors.months_before(moment, 12) == datetime(2025, 8, 31, tzinfo=timezone.utc)


def test_contribution_consistency_counts_recent_events(now):
    events = [ActivityEvent("PushEvent", now - timedelta(days=1)) for _ in range(15)]
    events += [ActivityEvent("IssuesEvent", now - timedelta(days=2)) for _ in range(5)]
    events += [ActivityEvent("WatchEvent", now - timedelta(days=60))]

    result = factors.contribution_consistency(events, now)

    # 20 recent events: frequency 13.33, streak 40; 3 event types: 45
    assert result.factors == {"commit_frequency": 13, "contribution_streak": 40, "activity_distribution": 45}
    assert result.score == 31


def test_contribution_consistency_without_events(now):
    result = factors.contribution_consistency([], now)

    assert result.score == 0
    assert set(result.factors.values()) == {0}


def test_contribution_consistency_neutral_when_unavailable(now):
    """Test the neutral fallback when the event stream could not be fetched."""
    result = factors.contribution_consistency(None, now)

    assert result.score == 50
    assert result.factors == {"commit_frequency": 50, "contribution_streak": 50, "activity_distribution": 50}


def test_community_engagement(make_repo):
    user = UserProfile(login="octocat", followers=30, following=10)
    repos = [
        make_repo(forks=100, watchers=250, has_issues=True, open_issues=3),
        make_repo(forks=0, watchers=0, has_issues=True, open_issues=0),
    ]

    result = factors.community_engagement(user, repos)

    assert result.factors == {"followers_ratio": 60, "collaboration_score": 35, "issue_participation": 50}
    # 60*0.4 + 35*0.35 + 50*0.25 = 48.75
    assert result.score == 49


def test_community_engagement_without_followers(make_repo):
    user = UserProfile(login="octocat", followers=0, following=0)

    result = factors.community_engagement(user, [make_repo()])

    assert result.factors["followers_ratio"] == 0


def test_documentation_completeness(make_repo):
    repos = [
        make_repo(description="A well documented project", topics=("docs",), has_wiki=True),
        make_repo(description="Short desc!"),
        make_repo(description="tiny"),
        make_repo(description=None, has_wiki=True),
    ]

    result = factors.documentation_completeness(repos)

    assert result.factors == {"readme_coverage": 50, "documentation_quality": 25, "wiki_usage": 50}
    # 50*0.5 + 25*0.3 + 50*0.2 = 42.5
    assert result.score == 43


def test_empty_repository_set_scores_zero(now):
    """Test that an empty repository set yields zeros instead of errors."""
    user = UserProfile(login="ghost", followers=500, following=1)

    scores = [
        factors.repository_quality([], now),
        factors.contribution_consistency([], now),
        factors.community_engagement(user, []),
        factors.documentation_completeness([]),
    ]

    assert all(score.score == 0 for score in scores)
    assert all(value == 0 for score in scores for value in score.factors.values())
    assert factors.overall_score(ScoringWeights(), *scores) == 0


def test_overall_score_weighting():
    weights = ScoringWeights()

    overall = factors.overall_score(
        weights,
        FactorScore(54, {}),
        FactorScore(50, {}),
        FactorScore(0, {}),
        FactorScore(0, {}),
    )

    # 54*0.3 + 50*0.25 = 28.7
    assert overall == 29


def test_overall_score_independent_of_evaluation_order(make_repo, now):
    """Test that computing the factors in any order gives the same score."""
    user = UserProfile(login="octocat", followers=12, following=4)
    repos = [
        make_repo(stars=7, language="Python", description="Command line helper tool", topics=("cli",),
                  has_wiki=True, forks=3, watchers=7),
        make_repo(stars=2, language="Go", updated_at=now - timedelta(days=300), has_issues=True, open_issues=1),
    ]
    events = [ActivityEvent("PushEvent", now - timedelta(days=3))]
    calculators = {
        "quality": lambda: factors.repository_quality(repos, now),
        "consistency": lambda: factors.contribution_consistency(events, now),
        "engagement": lambda: factors.community_engagement(user, repos),
        "documentation": lambda: factors.documentation_completeness(repos),
    }

    results = set()
    for order in itertools.permutations(calculators):
        computed = {name: calculators[name]() for name in order}
        results.add(factors.overall_score(
            ScoringWeights(),
            computed["quality"],
            computed["consistency"],
            computed["engagement"],
            computed["documentation"],
        ))

    assert len(results) == 1


@pytest.mark.parametrize("weights", [
    ScoringWeights(),
    ScoringWeights(0.25, 0.25, 0.25, 0.25),
    ScoringWeights(0.4, 0.2, 0.2, 0.2),
])
def test_overall_score_is_bounded(weights):
    top = FactorScore(100, {})

    assert factors.overall_score(weights, top, top, top, top) == 100
