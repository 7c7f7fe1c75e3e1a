"""Pure factor calculators behind the composite profile score.

Each calculator maps already-fetched GitHub data onto a 0-100 score plus
the sub-factors that explain it. None of them perform I/O, so they can run
in any order once the profile and repository fetch have completed.
"""
import calendar
from datetime import datetime, timedelta
from typing import Optional, Sequence
from devscore.domain.models import (
    ActivityEvent,
    FactorScore,
    RepositorySummary,
    ScoringWeights,
    UserProfile,
    round_half_up,
    round_one_decimal
)


def months_before(moment: datetime, months: int) -> datetime:
    """Shift a datetime back by calendar months, clamping the day of month."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(moment.day, calendar.monthrange(year, month + 1)[1])
    return moment.replace(year=year, month=month + 1, day=day)


def _percentage(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


def _zero(*names: str) -> FactorScore:
    return FactorScore(score=0, factors={name: 0 for name in names})


def repository_quality(repositories: Sequence[RepositorySummary], now: datetime) -> FactorScore:
    """Stars, language diversity, recent activity and curation of repositories."""
    if not repositories:
        return _zero("avg_stars_per_repo", "repo_diversity", "recent_activity", "code_quality_indicators")

    total = len(repositories)
    avg_stars_per_repo = sum(repo.stars for repo in repositories) / total

    languages = {repo.language for repo in repositories if repo.language}
    repo_diversity = min(len(languages) * 10, 100)

    six_months_ago = months_before(now, 6)
    recent = [repo for repo in repositories if repo.updated_at and repo.updated_at > six_months_ago]
    recent_activity = min(_percentage(len(recent), total), 100)

    curated = [
        repo for repo in repositories
        if repo.description and repo.topics and not repo.is_fork
    ]
    code_quality_indicators = min(_percentage(len(curated), total), 100)

    score = round_half_up(
        min(avg_stars_per_repo * 2, 25) * 0.3
        + repo_diversity * 0.25
        + recent_activity * 0.25
        + code_quality_indicators * 0.2
    )
    return FactorScore(
        score=score,
        factors={
            "avg_stars_per_repo": round_one_decimal(avg_stars_per_repo),
            "repo_diversity": round_half_up(repo_diversity),
            "recent_activity": round_half_up(recent_activity),
            "code_quality_indicators": round_half_up(code_quality_indicators)
        }
    )


NEUTRAL_CONSISTENCY = FactorScore(
    score=50,
    factors={"commit_frequency": 50, "contribution_streak": 50, "activity_distribution": 50}
)


def contribution_consistency(events: Optional[Sequence[ActivityEvent]], now: datetime) -> FactorScore:
    """Frequency and variety of public activity over the last 30 days.

    ``events`` is None when the event stream could not be fetched; the
    factor then reports the neutral fallback instead of failing the score.
    """
    if events is None:
        return NEUTRAL_CONSISTENCY
    if not events:
        return _zero("commit_frequency", "contribution_streak", "activity_distribution")

    thirty_days_ago = now - timedelta(days=30)
    recent = [event for event in events if event.created_at and event.created_at > thirty_days_ago]

    commit_frequency = min(len(recent) / 30 * 20, 100)
    contribution_streak = min(len(recent) * 2, 100)
    activity_distribution = min(len({event.type for event in events}) * 15, 100)

    score = round_half_up(
        commit_frequency * 0.4
        + contribution_streak * 0.3
        + activity_distribution * 0.3
    )
    return FactorScore(
        score=score,
        factors={
            "commit_frequency": round_half_up(commit_frequency),
            "contribution_streak": round_half_up(contribution_streak),
            "activity_distribution": round_half_up(activity_distribution)
        }
    )


def community_engagement(user: UserProfile, repositories: Sequence[RepositorySummary]) -> FactorScore:
    """Follower ratio, forks and watchers, and open issue activity."""
    if not repositories:
        return _zero("followers_ratio", "collaboration_score", "issue_participation")

    followers_ratio = 0.0
    if user.followers > 0:
        followers_ratio = min(user.followers / max(user.following, 1) * 20, 100)

    total_forks = sum(repo.forks for repo in repositories)
    total_watchers = sum(repo.watchers for repo in repositories)
    collaboration_score = min((total_forks + total_watchers) / 10, 100)

    with_issues = [repo for repo in repositories if repo.has_issues and repo.open_issues > 0]
    issue_participation = min(_percentage(len(with_issues), len(repositories)), 100)

    score = round_half_up(
        followers_ratio * 0.4
        + collaboration_score * 0.35
        + issue_participation * 0.25
    )
    return FactorScore(
        score=score,
        factors={
            "followers_ratio": round_half_up(followers_ratio),
            "collaboration_score": round_half_up(collaboration_score),
            "issue_participation": round_half_up(issue_participation)
        }
    )


def documentation_completeness(repositories: Sequence[RepositorySummary]) -> FactorScore:
    """Description coverage, documentation quality and wiki usage."""
    if not repositories:
        return _zero("readme_coverage", "documentation_quality", "wiki_usage")

    total = len(repositories)
    described = [repo for repo in repositories if repo.description and len(repo.description) > 10]
    well_documented = [
        repo for repo in repositories
        if repo.description and len(repo.description) > 20 and repo.topics
    ]
    with_wiki = [repo for repo in repositories if repo.has_wiki]

    readme_coverage = _percentage(len(described), total)
    documentation_quality = _percentage(len(well_documented), total)
    wiki_usage = _percentage(len(with_wiki), total)

    score = round_half_up(
        readme_coverage * 0.5
        + documentation_quality * 0.3
        + wiki_usage * 0.2
    )
    return FactorScore(
        score=score,
        factors={
            "readme_coverage": round_half_up(readme_coverage),
            "documentation_quality": round_half_up(documentation_quality),
            "wiki_usage": round_half_up(wiki_usage)
        }
    )


def overall_score(
    weights: ScoringWeights,
    repository_quality_score: FactorScore,
    contribution_consistency_score: FactorScore,
    community_engagement_score: FactorScore,
    documentation_completeness_score: FactorScore
) -> int:
    """Weighted sum of the four factor scores."""
    return round_half_up(
        repository_quality_score.score * weights.repository_quality
        + contribution_consistency_score.score * weights.contribution_consistency
        + community_engagement_score.score * weights.community_engagement
        + documentation_completeness_score.score * weights.documentation_completeness
    )
