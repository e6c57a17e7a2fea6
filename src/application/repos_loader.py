import asyncio
import logging
from typing import Callable, Dict, List, Optional
import aiohttp

from src.infrastructure.acl import GitHubTranslator
from src.infrastructure.readme_parser import extract_image, extract_description
from src.domain.exceptions import GitHubReposException, CacheStoreException
from src.domain.models import ProjectDescriptor, RepoState

logger = logging.getLogger(__name__)

# Only the most recently updated repositories get a README lookup
ENRICHMENT_LIMIT = 15
# Below this many remaining requests the README phase is skipped
RATE_LIMIT_THRESHOLD = 5

StateCallback = Callable[[RepoState], None]


class _Cycle:
    """One acquisition run for a username, from cache read to enrichment settlement."""

    def __init__(self, username: str):
        self.username = username
        self.cancelled = False
        self.task: Optional[asyncio.Task] = None
        # Working buffer patched by index as READMEs resolve
        self.buffer: List[ProjectDescriptor] = []

    def cancel(self) -> None:
        self.cancelled = True


class GitHubReposLoader:
    """
    Produces the list of GitHub-sourced project descriptors for a username.

    ``load`` answers synchronously from the cache (or with an empty loading state) and
    schedules a refresh on the running event loop. Observers registered with
    ``subscribe`` receive a new RepoState snapshot:

    - when the cycle starts,
    - once the repository list is fetched, filtered and given fallback images,
    - every time a README enrichment improves a descriptor.

    Starting a new cycle cancels the previous one; a cancelled cycle never publishes
    and never touches the cache.
    """

    def __init__(
            self,
            github_client,
            cache_store,
            enrichment_limit: int = ENRICHMENT_LIMIT,
            rate_limit_threshold: int = RATE_LIMIT_THRESHOLD,
            session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self.github_client = github_client
        self.cache_store = cache_store
        self.enrichment_limit = enrichment_limit
        self.rate_limit_threshold = rate_limit_threshold
        self.session_factory = session_factory
        self._state = RepoState()
        self._subscribers: List[StateCallback] = []
        self._cycle: Optional[_Cycle] = None
        # README-derived fields seen during this loader's lifetime, keyed by lowercased url
        self._readme_fields: Dict[str, Dict[str, str]] = {}

    @property
    def state(self) -> RepoState:
        return self._state

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Registers an observer and returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def load(self, username: Optional[str]) -> RepoState:
        """
        Starts a new acquisition cycle for ``username`` and returns the initial state.

        Must be called from a running event loop. A falsy username settles immediately
        to an empty, non-loading, error-free state.
        """
        self._cancel_current()

        if not username:
            self._set_state(RepoState())
            return self._state

        cycle = _Cycle(username)
        self._cycle = cycle

        cached = self._read_cache(username)
        if cached:
            self._set_state(RepoState(projects=list(cached), is_loading=False))
        else:
            self._set_state(RepoState(is_loading=True))

        logger.info(f"Loading GitHub repositories for {username} (cache {'hit' if cached else 'miss'}).")
        cycle.task = asyncio.get_running_loop().create_task(self._run(cycle, cached))
        return self._state

    async def wait_until_settled(self) -> None:
        """Waits for the current cycle, enrichment included, to finish."""
        cycle = self._cycle
        if cycle is not None and cycle.task is not None:
            await cycle.task

    def close(self) -> None:
        """Cancels the current cycle; the loader keeps its last state."""
        self._cancel_current()

    def _cancel_current(self) -> None:
        if self._cycle is not None:
            self._cycle.cancel()
            self._cycle = None

    def _set_state(self, state: RepoState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

    def _publish(self, cycle: _Cycle, **changes) -> None:
        if cycle.cancelled:
            return
        self._set_state(self._state.model_copy(update={'projects': list(cycle.buffer), **changes}))

    def _read_cache(self, username: str) -> Optional[List[ProjectDescriptor]]:
        try:
            entry = self.cache_store.read(username)
        except CacheStoreException as e:
            logger.warning(f"Cache unavailable, continuing without it: {e}")
            return None
        if entry is None or not entry.data:
            return None
        return entry.data

    async def _write_cache(self, cycle: _Cycle) -> None:
        if cycle.cancelled:
            return
        projects = list(cycle.buffer)
        try:
            # Blocking store call, run in a worker thread
            await asyncio.to_thread(self.cache_store.write, cycle.username, projects)
        except CacheStoreException as e:
            logger.warning(f"Could not cache repositories for {cycle.username}: {e}")
            return
        logger.info(f"Cached {len(projects)} repositories for {cycle.username}.")

    def _remember_cached_fields(self, basic: ProjectDescriptor, cached: Optional[ProjectDescriptor]) -> None:
        """Treats cached image/summary values that differ from the fallbacks as enriched ones."""
        if cached is None:
            return
        known = self._readme_fields.setdefault(basic.url.lower(), {})
        for field in ('image', 'summary'):
            value = getattr(cached, field)
            if value and value != getattr(basic, field):
                known.setdefault(field, value)
        if not known:
            del self._readme_fields[basic.url.lower()]

    def _with_known_readme_fields(self, descriptor: ProjectDescriptor) -> ProjectDescriptor:
        known = self._readme_fields.get(descriptor.url.lower())
        if not known:
            return descriptor
        return descriptor.model_copy(update=known)

    async def _run(self, cycle: _Cycle, cached: Optional[List[ProjectDescriptor]]) -> None:
        async with self.session_factory() as session:
            try:
                raw_repos, rate_limit = await self.github_client.fetch_user_repos(session, cycle.username)
            except GitHubReposException as e:
                self._handle_fetch_error(cycle, e, cached)
                return

            if cycle.cancelled:
                return

            cached_by_url = {project.url.lower(): project for project in cached or []}
            relevant = [repo for repo in raw_repos if GitHubTranslator.is_relevant(repo, cycle.username)]
            cycle.buffer = []
            for repo in relevant:
                basic = GitHubTranslator.to_domain(repo, cycle.username)
                self._remember_cached_fields(basic, cached_by_url.get(basic.url.lower()))
                cycle.buffer.append(self._with_known_readme_fields(basic))
            logger.info(f"{cycle.username}: {len(cycle.buffer)} of {len(raw_repos)} repositories kept.")
            self._publish(cycle, is_loading=False, error=None)

            if rate_limit.remaining is not None and rate_limit.remaining < self.rate_limit_threshold:
                logger.warning(
                    f"Only {rate_limit.remaining} GitHub requests left. "
                    f"Skipping README enrichment for {cycle.username}."
                )
                await self._write_cache(cycle)
                return

            candidates = list(enumerate(cycle.buffer[:self.enrichment_limit]))
            results = await asyncio.gather(
                *(self._enrich(session, cycle, index, descriptor) for index, descriptor in candidates),
                return_exceptions=True,
            )
            for (_, descriptor), result in zip(candidates, results):
                if isinstance(result, Exception):
                    logger.error(f"Unexpected error enriching {descriptor.name}: {result!r}")

            if cycle.cancelled:
                return
            await self._write_cache(cycle)
            logger.info(f"Finished loading GitHub repositories for {cycle.username}.")

    async def _enrich(self, session, cycle: _Cycle, index: int, descriptor: ProjectDescriptor) -> None:
        readme = await self.github_client.fetch_readme(session, cycle.username, descriptor.name)
        if cycle.cancelled or not readme:
            return

        patch = {}
        image = extract_image(readme, descriptor.url)
        if image:
            patch['image'] = image
        description = extract_description(readme)
        if description:
            patch['summary'] = description
        if not patch:
            return

        self._readme_fields.setdefault(descriptor.url.lower(), {}).update(patch)
        cycle.buffer[index] = cycle.buffer[index].model_copy(update=patch)
        self._publish(cycle)

    def _handle_fetch_error(
        self,
        cycle: _Cycle,
        error: GitHubReposException,
        cached: Optional[List[ProjectDescriptor]],
    ) -> None:
        if cycle.cancelled:
            return
        if cached:
            # The cached list published at cycle start stays in place
            logger.warning(f"Serving cached repositories for {cycle.username}: {error.message}")
            return

        logger.error(f"Error fetching GitHub repos for {cycle.username}: {error.message}")
        self._set_state(RepoState(projects=[], is_loading=False, error=error.message))
