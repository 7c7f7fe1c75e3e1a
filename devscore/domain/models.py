"""Domain models representing core business entities.

Frozen dataclasses keep every record immutable: GitHub data is re-fetched,
never patched in place, and scores are recomputed rather than merged.
"""
import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding towards +infinity."""
    return int(math.floor(value + 0.5))


def round_one_decimal(value: float) -> float:
    """Round to one decimal place using round-half-up."""
    return round_half_up(value * 10) / 10


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse GitHub's ISO-8601 timestamps (trailing ``Z`` included)."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class Serializable:
    """Mixin giving dataclasses a plain JSON-compatible representation."""

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class RateLimitSnapshot(Serializable):
    """Latest rate-limit headers seen by one gateway; best-effort only."""
    limit: int
    remaining: int
    reset: int
    used: int

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Optional['RateLimitSnapshot']:
        """Build a snapshot from lower-cased response headers, if present."""
        if "x-ratelimit-limit" not in headers:
            return None
        return cls(
            limit=int(headers.get("x-ratelimit-limit", 0)),
            remaining=int(headers.get("x-ratelimit-remaining", 0)),
            reset=int(headers.get("x-ratelimit-reset", 0)),
            used=int(headers.get("x-ratelimit-used", 0))
        )


@dataclass(frozen=True)
class UserProfile(Serializable):
    login: str
    name: Optional[str] = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> 'UserProfile':
        return cls(
            login=payload["login"],
            name=payload.get("name"),
            followers=payload.get("followers") or 0,
            following=payload.get("following") or 0,
            public_repos=payload.get("public_repos") or 0,
            created_at=parse_datetime(payload.get("created_at"))
        )


@dataclass(frozen=True)
class RepositorySummary(Serializable):
    """Immutable snapshot of a GitHub repository as returned by the API."""
    id: int
    name: str
    full_name: str
    owner: str
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    size: int = 0
    open_issues: int = 0
    topics: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    description: Optional[str] = None
    is_fork: bool = False
    has_wiki: bool = False
    has_issues: bool = False
    permissions: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> 'RepositorySummary':
        """Translate a REST repository payload into a domain entity."""
        owner = (payload.get("owner") or {}).get("login", "")
        return cls(
            id=payload["id"],
            name=payload["name"],
            full_name=payload.get("full_name") or f"{owner}/{payload['name']}",
            owner=owner,
            language=payload.get("language"),
            stars=payload.get("stargazers_count") or 0,
            forks=payload.get("forks_count") or 0,
            watchers=payload.get("watchers_count") or 0,
            size=payload.get("size") or 0,
            open_issues=payload.get("open_issues_count") or 0,
            topics=tuple(payload.get("topics") or ()),
            created_at=parse_datetime(payload.get("created_at")),
            updated_at=parse_datetime(payload.get("updated_at")),
            description=payload.get("description"),
            is_fork=bool(payload.get("fork")),
            has_wiki=bool(payload.get("has_wiki")),
            has_issues=bool(payload.get("has_issues")),
            permissions=dict(payload.get("permissions") or {})
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RepositorySummary':
        """Rebuild an entity from its ``to_dict`` form."""
        values = dict(data)
        values["topics"] = tuple(values.get("topics") or ())
        values["created_at"] = parse_datetime(values.get("created_at"))
        values["updated_at"] = parse_datetime(values.get("updated_at"))
        values["permissions"] = dict(values.get("permissions") or {})
        return cls(**values)


@dataclass(frozen=True)
class ActivityEvent(Serializable):
    type: str
    created_at: Optional[datetime]

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> 'ActivityEvent':
        return cls(
            type=payload.get("type") or "UnknownEvent",
            created_at=parse_datetime(payload.get("created_at"))
        )


@dataclass(frozen=True)
class FileContent(Serializable):
    """A remote file together with its version token (blob ``sha``)."""
    path: str
    sha: str
    content: Optional[str] = None
    encoding: Optional[str] = None


@dataclass(frozen=True)
class SearchResult(Serializable):
    total_count: int
    items: Tuple[RepositorySummary, ...] = ()


@dataclass(frozen=True)
class ContributionDay(Serializable):
    date: str
    count: int


@dataclass(frozen=True)
class ContributionCalendar(Serializable):
    """A full calendar year of daily contribution counts."""
    year: int
    total: int
    longest_streak: int
    current_streak: int
    average_per_day: float
    daily: Tuple[ContributionDay, ...]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ContributionCalendar':
        values = dict(data)
        values["daily"] = tuple(ContributionDay(**day) for day in values.get("daily") or ())
        return cls(**values)


@dataclass(frozen=True)
class FactorScore(Serializable):
    """One factor of the composite score with its explanatory sub-factors."""
    score: int
    factors: Dict[str, float]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FactorScore':
        return cls(score=data["score"], factors=dict(data["factors"]))


@dataclass(frozen=True)
class ScoringWeights(Serializable):
    """Weights of the four factors; they must sum to 1.0."""
    repository_quality: float = 0.30
    contribution_consistency: float = 0.25
    community_engagement: float = 0.25
    documentation_completeness: float = 0.20

    def __post_init__(self):
        total = (
            self.repository_quality
            + self.contribution_consistency
            + self.community_engagement
            + self.documentation_completeness
        )
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total}")


@dataclass(frozen=True)
class ProfileScoreBreakdown(Serializable):
    overall_score: int
    repository_quality: FactorScore
    contribution_consistency: FactorScore
    community_engagement: FactorScore
    documentation_completeness: FactorScore
    code_quality: int
    weights: ScoringWeights

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ProfileScoreBreakdown':
        return cls(
            overall_score=data["overall_score"],
            repository_quality=FactorScore.from_dict(data["repository_quality"]),
            contribution_consistency=FactorScore.from_dict(data["contribution_consistency"]),
            community_engagement=FactorScore.from_dict(data["community_engagement"]),
            documentation_completeness=FactorScore.from_dict(data["documentation_completeness"]),
            code_quality=data["code_quality"],
            weights=ScoringWeights(**data["weights"])
        )


@dataclass(frozen=True)
class RepositoryAnalysis(Serializable):
    total_repos: int
    total_stars: int
    total_forks: int
    total_size: int
    languages: Dict[str, int]
    topics: Tuple[str, ...]
    most_starred_repo: Optional[RepositorySummary]
    most_recent_repo: Optional[RepositorySummary]
    readme_coverage: int
    avg_repo_quality: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RepositoryAnalysis':
        values = dict(data)
        values["languages"] = dict(values.get("languages") or {})
        values["topics"] = tuple(values.get("topics") or ())
        for key in ("most_starred_repo", "most_recent_repo"):
            if values.get(key) is not None:
                values[key] = RepositorySummary.from_dict(values[key])
        return cls(**values)


@dataclass(frozen=True)
class LanguageDistributionEntry(Serializable):
    language: str
    bytes: int
    percentage: float


@dataclass(frozen=True)
class TrendPoint(Serializable):
    month: str
    value: int


@dataclass(frozen=True)
class TechnologyTrend(Serializable):
    technology: str
    trend: str
    demand_score: int
    growth_rate: int
    data_points: Tuple[TrendPoint, ...]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TechnologyTrend':
        values = dict(data)
        values["data_points"] = tuple(TrendPoint(**point) for point in values["data_points"])
        return cls(**values)


@dataclass(frozen=True)
class WriteAttempt(Serializable):
    """One try of a publish call; lives only as long as that call."""
    target_path: str
    content_hash: str
    existing_version_token: Optional[str]
    attempt_number: int
    outcome: str


@dataclass(frozen=True)
class PublishResult(Serializable):
    result: Dict[str, Any]
    action: str
    repository_url: str
    file_url: str
    attempts: Tuple[WriteAttempt, ...] = ()


@dataclass(frozen=True)
class RepositoryAccess(Serializable):
    has_access: bool
    has_write_access: bool
    repository: Optional[RepositorySummary] = None
    error: Optional[str] = None
