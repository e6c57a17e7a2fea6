from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

class ProjectDescriptor(BaseModel):
    """
    Immutable domain model representing one entry of the projects page.
    Built from GitHub metadata (optionally enriched from the README) or from the
    hand-curated featured list.
    """
    # Enforces immutability: enrichment replaces the descriptor with a patched copy.
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Repository or project name")
    summary: str = Field(..., description="Human readable description")
    url: str = Field(..., description="Canonical link, used as deduplication key")
    image: Optional[str] = Field(None, description="Preview image URL")
    stars: int = Field(0, ge=0, description="Total number of stargazers")
    language: Optional[str] = Field(None, description="Primary language reported by GitHub")
    updated_at: Optional[str] = Field(None, alias="updatedAt", description="Last update timestamp")
    is_github_repo: bool = Field(False, alias="isGitHubRepo")
    is_featured: bool = Field(False, alias="isFeatured")


class CacheEntry(BaseModel):
    """Persisted list of descriptors for one username."""
    timestamp: int = Field(..., description="Write time in epoch milliseconds")
    data: List[ProjectDescriptor] = Field(default_factory=list)


class RateLimitStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    remaining: Optional[int] = None
    reset_at: Optional[datetime] = None


class RepoState(BaseModel):
    """Snapshot published to observers of the repository loader."""
    model_config = ConfigDict(frozen=True)

    projects: List[ProjectDescriptor] = Field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
