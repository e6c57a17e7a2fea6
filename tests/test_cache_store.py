import threading
import unittest
from unittest.mock import MagicMock

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from src.domain.exceptions import CacheStoreException
from src.domain.models import ProjectDescriptor
from src.infrastructure.cache_store import CACHE_TTL_MS, ReposCacheRepository, cache_key, cache_table


class _Clock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _descriptor(name="tool"):
    return ProjectDescriptor(
        name=name,
        summary="A handy tool",
        url=f"https://github.com/alice/{name}",
        image=f"https://opengraph.githubassets.com/1/alice/{name}",
        stars=4,
        language="Go",
        updated_at="2024-01-02T03:04:05Z",
        is_github_repo=True,
    )


class TestReposCacheRepository(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock(1_700_000_000_000)
        self.repo = ReposCacheRepository("sqlite://", clock=self.clock)

    def test_cache_key_format(self) -> None:
        self.assertEqual(cache_key("alice"), "github_repos_cache_alice")

    def test_write_then_read_fresh_entry(self) -> None:
        self.repo.write("alice", [_descriptor()])

        entry = self.repo.read("alice")

        self.assertIsNotNone(entry)
        self.assertEqual(entry.timestamp, self.clock.now)
        self.assertEqual(entry.data, [_descriptor()])

    def test_data_is_stored_with_camel_case_keys(self) -> None:
        self.repo.write("alice", [_descriptor()])

        with self.repo.engine.connect() as conn:
            row = conn.execute(select(cache_table.c.cache_key, cache_table.c.data)).first()

        self.assertEqual(row.cache_key, "github_repos_cache_alice")
        self.assertIn("isGitHubRepo", row.data[0])
        self.assertIn("updatedAt", row.data[0])

    def test_write_from_worker_thread_is_visible(self) -> None:
        writer = threading.Thread(target=self.repo.write, args=("alice", [_descriptor()]))
        writer.start()
        writer.join()

        entry = self.repo.read("alice")

        self.assertIsNotNone(entry)
        self.assertEqual(entry.data, [_descriptor()])

    def test_missing_entry_is_none(self) -> None:
        self.assertIsNone(self.repo.read("bob"))

    def test_entry_older_than_window_is_a_miss(self) -> None:
        self.repo.write("alice", [_descriptor()])

        self.clock.now += CACHE_TTL_MS
        self.assertIsNotNone(self.repo.read("alice"))

        self.clock.now += 1
        self.assertIsNone(self.repo.read("alice"))

    def test_write_replaces_previous_entry(self) -> None:
        self.repo.write("alice", [_descriptor("old")])
        self.clock.now += 1000
        self.repo.write("alice", [_descriptor("new")])

        entry = self.repo.read("alice")

        self.assertEqual([p.name for p in entry.data], ["new"])
        self.assertEqual(entry.timestamp, self.clock.now)

    def test_unreadable_data_is_a_miss(self) -> None:
        with self.repo.engine.begin() as conn:
            conn.execute(cache_table.insert().values(
                cache_key=cache_key("alice"), timestamp=self.clock.now, data=[{"name": "broken"}],
            ))

        self.assertIsNone(self.repo.read("alice"))

    def test_database_errors_are_wrapped(self) -> None:
        error = OperationalError("SELECT", {}, Exception("disk I/O error"))

        self.repo.engine = MagicMock()
        self.repo.engine.connect.side_effect = error

        with self.assertRaises(CacheStoreException):
            self.repo.read("alice")
