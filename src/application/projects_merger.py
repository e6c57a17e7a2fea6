from enum import Enum
from typing import Dict, Iterable, List

from src.domain.models import ProjectDescriptor


class ProjectsView(str, Enum):
    ALL = "all"
    FEATURED = "featured"
    GITHUB = "github"


def _unique_by_url(projects: Iterable[ProjectDescriptor]) -> List[ProjectDescriptor]:
    seen = set()
    unique = []
    for project in projects:
        key = project.url.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(project)
    return unique


def featured_projects(static_projects: Iterable[ProjectDescriptor]) -> List[ProjectDescriptor]:
    """Hand-curated entries, tagged as featured."""
    return [project.model_copy(update={"is_featured": True}) for project in _unique_by_url(static_projects)]


def unique_github_projects(
    static_projects: Iterable[ProjectDescriptor],
    github_projects: Iterable[ProjectDescriptor],
) -> List[ProjectDescriptor]:
    """GitHub entries whose url (case-insensitive) is not already a featured project."""
    featured_urls = {project.url.lower() for project in static_projects}
    return [project for project in _unique_by_url(github_projects) if project.url.lower() not in featured_urls]


def merge_projects(
    static_projects: List[ProjectDescriptor],
    github_projects: List[ProjectDescriptor],
    view: ProjectsView = ProjectsView.ALL,
) -> List[ProjectDescriptor]:
    """
    Combines the featured list with the loader's list for the selected view.

    The hand-curated entry wins when both sides share a url; ``all`` lists the
    featured entries first. Pure function of its arguments.
    """
    view = ProjectsView(view)
    if view is ProjectsView.FEATURED:
        return featured_projects(static_projects)
    if view is ProjectsView.GITHUB:
        return unique_github_projects(static_projects, github_projects)
    return featured_projects(static_projects) + unique_github_projects(static_projects, github_projects)


def count_views(
    static_projects: List[ProjectDescriptor],
    github_projects: List[ProjectDescriptor],
) -> Dict[ProjectsView, int]:
    """Number of entries each view would show, for labelling the view selector."""
    return {view: len(merge_projects(static_projects, github_projects, view)) for view in ProjectsView}
