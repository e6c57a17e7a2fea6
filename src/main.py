import asyncio
import json
import os
import sys
import logging
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import TypeAdapter

from src.domain.models import ProjectDescriptor, RepoState
from src.domain.exceptions import CacheStoreException
from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.cache_store import ReposCacheRepository
from src.application.repos_loader import GitHubReposLoader
from src.application.projects_merger import ProjectsView, merge_projects, count_views

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

DEFAULT_CACHE_URL = "sqlite:///github_repos_cache.db"

def github_username_from_url(profile_url: Optional[str]) -> Optional[str]:
    """Extracts the username from a profile link such as https://github.com/alice/."""
    if not profile_url or "github.com/" not in profile_url:
        return None
    username = profile_url.split("github.com/", 1)[1].strip("/").split("/")[0]
    return username or None

def load_featured_projects(path: Optional[str]) -> List[ProjectDescriptor]:
    """
    Reads the hand-curated project list from a JSON file.
    Accepts either a bare list or a CV document holding it under home.projects.
    """
    if not path:
        return []
    with open(path, encoding="utf-8") as f:
        document = json.load(f)
    if isinstance(document, dict):
        document = document.get("home", {}).get("projects", [])
    return TypeAdapter(List[ProjectDescriptor]).validate_python(document)

def _log_state(state: RepoState) -> None:
    logger.info(
        f"State: {len(state.projects)} repositories, loading={state.is_loading}, error={state.error}"
    )

async def main():
    # Load environment variables from .env file
    load_dotenv()

    username = os.getenv("GITHUB_USERNAME") or github_username_from_url(os.getenv("GITHUB_PROFILE_URL"))
    github_token = os.getenv("GITHUB_TOKEN")
    cache_url = os.getenv("CACHE_DATABASE_URL", DEFAULT_CACHE_URL)

    if not username:
        logger.error("GITHUB_USERNAME (or GITHUB_PROFILE_URL) is not set in the environment.")
        sys.exit(1)

    try:
        view = ProjectsView(os.getenv("PROJECTS_VIEW", ProjectsView.ALL.value))
    except ValueError:
        logger.error(f"PROJECTS_VIEW must be one of: {', '.join(v.value for v in ProjectsView)}.")
        sys.exit(1)

    if not github_token:
        logger.info("GITHUB_TOKEN is not set; using unauthenticated GitHub requests.")

    try:
        featured = load_featured_projects(os.getenv("FEATURED_PROJECTS_PATH"))
        cache_store = ReposCacheRepository(db_url=cache_url)
    except (OSError, ValueError, CacheStoreException) as e:
        logger.error(f"Could not initialise the projects page: {e}")
        sys.exit(1)

    loader = GitHubReposLoader(
        github_client=GitHubRestClient(token=github_token),
        cache_store=cache_store,
    )
    loader.subscribe(_log_state)

    try:
        loader.load(username)
        await loader.wait_until_settled()
    except KeyboardInterrupt:
        logger.info("Loading interrupted by user. Exiting gracefully.")
        loader.close()
        return

    state = loader.state
    if state.error:
        logger.error(state.error)

    counts = count_views(featured, state.projects)
    logger.info(", ".join(f"{v.value}: {n}" for v, n in counts.items()))

    projects = merge_projects(featured, state.projects, view)
    print(json.dumps([p.model_dump(by_alias=True) for p in projects], indent=2, ensure_ascii=False))

if __name__ == "__main__":
    asyncio.run(main())
