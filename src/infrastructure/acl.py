from typing import Any, Dict
from src.domain.models import ProjectDescriptor

# Self-referential portfolio repositories, matched as case-insensitive substrings
PORTFOLIO_REPO_NAMES = ('portfolio', 'portfolio_v', 'portfolio-main', 'my-portfolio')
# Unrelated coursework repository, matched the same way
COURSEWORK_REPO_NAMES = ('coursework',)

PLACEHOLDER_SUMMARY = 'Sin descripción'
SOCIAL_PREVIEW_URL = 'https://opengraph.githubassets.com/1/{owner}/{repo}'

class GitHubTranslator:
    """
    Anti-corruption layer that filters raw GitHub REST repository records and translates
    them into ProjectDescriptor instances.
    """

    @staticmethod
    def is_relevant(raw_repo: Dict[str, Any], username: str) -> bool:
        """
        Applies the filtering policy to a raw repository record.

        Excludes forks, private repositories, the profile README repository (named
        like the user) and portfolio or coursework repositories.
        """
        if raw_repo.get('fork') or raw_repo.get('private'):
            return False

        name = (raw_repo.get('name') or '').lower()
        if name == username.lower():
            return False

        denylist = PORTFOLIO_REPO_NAMES + COURSEWORK_REPO_NAMES
        return not any(excluded in name for excluded in denylist)

    @staticmethod
    def fallback_image(owner: str, repo: str) -> str:
        """Social preview image for a repository; built locally, never requested."""
        return SOCIAL_PREVIEW_URL.format(owner=owner, repo=repo)

    @staticmethod
    def to_domain(raw_repo: Dict[str, Any], username: str) -> ProjectDescriptor:
        """
        Transforms a raw GitHub REST repository record into a basic ProjectDescriptor,
        with the fallback image and summary in place.

        Args:
            raw_repo (Dict[str, Any]): The raw JSON record from GET /users/{username}/repos.
            username (str): Owner of the repository.

        Returns:
            ProjectDescriptor: The descriptor before any README enrichment.
        """
        name = raw_repo.get('name', '')

        return ProjectDescriptor(
            name=name,
            summary=raw_repo.get('description') or PLACEHOLDER_SUMMARY,
            url=raw_repo.get('html_url', ''),
            image=GitHubTranslator.fallback_image(username, name),
            stars=raw_repo.get('stargazers_count') or 0,
            language=raw_repo.get('language'),
            updated_at=raw_repo.get('updated_at'),
            is_github_repo=True,
        )
