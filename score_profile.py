"""Main entry point for scoring a GitHub profile.

Computes the composite profile score and derived analyses for one user and
prints them as a JSON report.

Usage:
    python score_profile.py <username> [year]
"""
import asyncio
import json
import sys
import logging
from dotenv import load_dotenv
from devscore.application.scoring_service import ScoringService
from devscore.infrastructure.github_gateway import GitHubGateway
from devscore.infrastructure.redis_cache import ResilientCache
from devscore.infrastructure.settings import Settings

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logger = logging.getLogger(__name__)


async def main():
    """Score one user and print the report."""
    if len(sys.argv) < 2:
        print("Usage: python score_profile.py <username> [year]")
        sys.exit(2)

    username = sys.argv[1]
    year = int(sys.argv[2]) if len(sys.argv) > 2 else None

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if not settings.github_token:
        logger.warning("GITHUB_TOKEN not set; using anonymous requests (60 requests/hour)")

    gateway = GitHubGateway(settings.github_token, settings=settings)
    cache = ResilientCache(settings)
    scoring = ScoringService(gateway, cache)

    try:
        score = await scoring.calculate_profile_score(username)
        analysis = await scoring.analyze_repositories(username)
        languages = await scoring.get_language_distribution(username)
        trends = await scoring.get_technology_trends(username)
        calendar = await scoring.get_contribution_calendar(username, year)

        report = {
            "username": username,
            "profile_score": score.to_dict(),
            "repository_analysis": analysis.to_dict(),
            "language_distribution": [entry.to_dict() for entry in languages],
            "technology_trends": [trend.to_dict() for trend in trends],
            "contributions": {
                key: value for key, value in calendar.to_dict().items() if key != "daily"
            }
        }
        print(json.dumps(report, indent=2))

        rate_limit = gateway.get_rate_limit_snapshot()
        if rate_limit:
            logger.info(f"Rate limit remaining: {rate_limit.remaining}/{rate_limit.limit}")

    except Exception as e:
        logger.error(f"Scoring failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await gateway.close()
        await cache.close()


if __name__ == "__main__":
    asyncio.run(main())
