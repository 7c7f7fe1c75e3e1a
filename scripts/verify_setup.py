"""Verify that the setup is correct before scoring profiles."""
import asyncio
import os
import sys
from dotenv import load_dotenv
from devscore.domain.errors import GitHubAPIError
from devscore.infrastructure.github_gateway import GitHubGateway
from devscore.infrastructure.redis_cache import ResilientCache
from devscore.infrastructure.settings import Settings

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


def check_environment_variables():
    """Check recommended environment variables."""
    print("Checking environment variables...")

    recommended_vars = ["GITHUB_TOKEN"]
    optional_vars = ["REDIS_URL", "CACHE_PREFIX", "CACHE_TTL", "GITHUB_API_BASE_URL"]

    missing = [var for var in recommended_vars if not os.getenv(var)]
    if missing:
        print(f"⚠️  Missing recommended environment variables: {', '.join(missing)}")
        print("   Requests will be anonymous and limited to 60 per hour")
    else:
        print("✅ Recommended environment variables set")

    for var in optional_vars:
        if os.getenv(var):
            print(f"   {var}: {os.getenv(var)}")

    return True


async def check_cache_connection(settings: Settings):
    """Check Redis connection; failure only means running without cache."""
    print("\nChecking cache connection...")

    cache = ResilientCache(settings)
    try:
        if await cache.reconnect():
            print(f"✅ Successfully connected to Redis at {settings.redis_url}")
        else:
            print(f"⚠️  Redis unavailable at {settings.redis_url}; scoring will run without cache")
        return True
    finally:
        await cache.close()


async def check_github_api(settings: Settings):
    """Verify the token is accepted and report the rate-limit window."""
    print("\nChecking GitHub API...")

    gateway = GitHubGateway(settings.github_token, settings=settings)
    try:
        if settings.github_token:
            user = await gateway.get_user()
            print(f"✅ Authenticated as {user.login}")
        else:
            await gateway.get_user("octocat")
            print("✅ GitHub API reachable (anonymous)")

        rate_limit = gateway.get_rate_limit_snapshot()
        if rate_limit:
            print(f"   Rate limit: {rate_limit.remaining}/{rate_limit.limit} remaining")
        return True
    except GitHubAPIError as e:
        print(f"❌ GitHub API check failed: {e}")
        return False
    finally:
        await gateway.close()


async def main():
    """Run all verification checks."""
    print("=" * 60)
    print("devscore - Setup Verification")
    print("=" * 60)

    settings = Settings.from_env()
    results = {
        "Environment Variables": check_environment_variables(),
        "Cache Connection": await check_cache_connection(settings),
        "GitHub API": await check_github_api(settings),
    }

    print("\n" + "=" * 60)
    print("Verification Summary")
    print("=" * 60)

    for name, passed in results.items():
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"{status}: {name}")

    if all(results.values()):
        print("\n✅ All checks passed! Ready to score profiles.")
        print("\nNext steps:")
        print("  python score_profile.py <username>")
        sys.exit(0)
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        print("\nCommon solutions:")
        print("  - Set GITHUB_TOKEN: export GITHUB_TOKEN=your_token")
        print("  - Start Redis: docker run -d -p 6379:6379 redis")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
