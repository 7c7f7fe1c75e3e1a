"""Publish a local text file to a GitHub repository.

Usage:
    python scripts/publish_file.py <owner/repo> <local file> [remote path] [commit message]
"""
import asyncio
import logging
import sys
from pathlib import Path
from dotenv import load_dotenv
from devscore.application.publish_service import PublishService
from devscore.domain.errors import GitHubAPIError
from devscore.infrastructure.github_gateway import GitHubGateway
from devscore.infrastructure.settings import Settings

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logger = logging.getLogger(__name__)


async def main():
    """Validate access, then create or update the remote file."""
    if len(sys.argv) < 3 or "/" not in sys.argv[1]:
        print(__doc__)
        sys.exit(2)

    owner, repo = sys.argv[1].split("/", 1)
    local_file = Path(sys.argv[2])
    remote_path = sys.argv[3] if len(sys.argv) > 3 else local_file.name
    message = sys.argv[4] if len(sys.argv) > 4 else f"Add/Update {remote_path}"

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if not settings.github_token:
        logger.error("GITHUB_TOKEN environment variable is required")
        sys.exit(1)

    gateway = GitHubGateway(settings.github_token, settings=settings)
    publisher = PublishService(gateway, max_attempts=settings.publish_max_attempts)

    try:
        access = await gateway.validate_repository_access(owner, repo)
        if not access.has_write_access:
            logger.error(access.error)
            sys.exit(1)

        result = await publisher.publish_file(
            owner,
            repo,
            local_file.read_text(encoding="utf-8"),
            path=remote_path,
            message=message
        )
        logger.info(f"{remote_path} {result.action}: {result.file_url}")

    except GitHubAPIError as e:
        logger.error(f"Publish failed: {e}")
        sys.exit(1)
    finally:
        await gateway.close()


if __name__ == "__main__":
    asyncio.run(main())
