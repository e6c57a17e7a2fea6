import aiohttp
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Tuple, List, Optional, Mapping

from src.domain.exceptions import (
    RateLimitExceededException,
    UserNotFoundException,
    FetchFailedException,
    NetworkException,
)
from src.domain.models import RateLimitStatus

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
REPOS_PER_PAGE = 100
# README lookups are best effort; a slow one is treated as a miss
README_TIMEOUT = aiohttp.ClientTimeout(total=5)

class GitHubRestClient:
    """
    Client for the GitHub REST API.
    Lists a user's public repositories and retrieves raw README content.
    The token is optional; without it requests run unauthenticated.
    """

    def __init__(self, token: Optional[str] = None, api_url: str = GITHUB_API_URL):
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "portfolio-github-projects",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.readme_headers = {**self.headers, "Accept": "application/vnd.github.v3.raw"}
        self.api_url = api_url.rstrip("/")

    @staticmethod
    def parse_rate_limit(headers: Mapping[str, str]) -> RateLimitStatus:
        """
        Reads the X-RateLimit-Remaining / X-RateLimit-Reset headers.
        Missing or malformed values are left as None.
        """
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")
        return RateLimitStatus(
            remaining=int(remaining) if remaining and remaining.isdigit() else None,
            reset_at=datetime.fromtimestamp(int(reset), tz=timezone.utc) if reset and reset.isdigit() else None,
        )

    async def fetch_user_repos(
        self,
        session: aiohttp.ClientSession,
        username: str,
    ) -> Tuple[List[Dict[str, Any]], RateLimitStatus]:
        """
        Fetches the public repositories of a user, most recently updated first.

        Returns:
            Tuple of (raw repository records, rate limit status).

        Raises:
            RateLimitExceededException: on 403.
            UserNotFoundException: on 404.
            FetchFailedException: on any other non-success status.
            NetworkException: when no response could be obtained.
        """
        url = f"{self.api_url}/users/{username}/repos"
        params = {"sort": "updated", "per_page": str(REPOS_PER_PAGE)}

        try:
            async with session.get(url, params=params, headers=self.headers) as response:
                rate_limit = self.parse_rate_limit(response.headers)
                logger.info(f"GitHub API - remaining requests: {rate_limit.remaining}")

                if response.status == 403:
                    raise RateLimitExceededException(reset_at=rate_limit.reset_at)
                if response.status == 404:
                    raise UserNotFoundException(username)
                if not response.ok:
                    raise FetchFailedException(response.status)

                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkException(str(e)) from e

        return data, rate_limit

    async def fetch_readme(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo: str,
    ) -> Optional[str]:
        """
        Fetches the raw README of a repository.
        Returns None when there is no README or the request fails or times out.
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/readme"

        try:
            async with session.get(url, headers=self.readme_headers, timeout=README_TIMEOUT) as response:
                if not response.ok:
                    logger.debug(f"No README for {owner}/{repo} (status {response.status})")
                    return None
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Could not fetch README for {owner}/{repo}: {e!r}")
            return None
