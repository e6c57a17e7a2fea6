import unittest

from src.infrastructure.acl import GitHubTranslator, PLACEHOLDER_SUMMARY


def _repo(name, **overrides):
    raw_repo = {
        "name": name,
        "description": None,
        "html_url": f"https://github.com/alice/{name}",
        "fork": False,
        "private": False,
        "stargazers_count": 3,
        "language": "Python",
        "updated_at": "2024-01-02T03:04:05Z",
    }
    raw_repo.update(overrides)
    return raw_repo


class TestFilteringPolicy(unittest.TestCase):
    def test_keeps_public_source_repository(self) -> None:
        self.assertTrue(GitHubTranslator.is_relevant(_repo("tool"), "alice"))

    def test_excludes_forks_and_private_repositories(self) -> None:
        self.assertFalse(GitHubTranslator.is_relevant(_repo("tool", fork=True), "alice"))
        self.assertFalse(GitHubTranslator.is_relevant(_repo("tool", private=True), "alice"))

    def test_excludes_profile_readme_repository(self) -> None:
        self.assertFalse(GitHubTranslator.is_relevant(_repo("Alice"), "alice"))
        self.assertFalse(GitHubTranslator.is_relevant(_repo("alice"), "ALICE"))

    def test_excludes_portfolio_and_coursework_names(self) -> None:
        for name in ("portfolio", "My-Portfolio", "portfolio_v2", "old-PORTFOLIO-main", "coursework-2023"):
            with self.subTest(name=name):
                self.assertFalse(GitHubTranslator.is_relevant(_repo(name), "alice"))

    def test_output_is_subset_of_input(self) -> None:
        raw_repos = [
            _repo("tool"),
            _repo("fork", fork=True),
            _repo("alice"),
            _repo("my-portfolio"),
            _repo("cli"),
        ]

        kept = [r for r in raw_repos if GitHubTranslator.is_relevant(r, "alice")]

        self.assertEqual([r["name"] for r in kept], ["tool", "cli"])


class TestGitHubTranslator(unittest.TestCase):
    def test_to_domain_assigns_fallbacks(self) -> None:
        descriptor = GitHubTranslator.to_domain(_repo("tool"), "alice")

        self.assertEqual(descriptor.summary, PLACEHOLDER_SUMMARY)
        self.assertEqual(descriptor.image, "https://opengraph.githubassets.com/1/alice/tool")
        self.assertEqual(descriptor.url, "https://github.com/alice/tool")
        self.assertEqual(descriptor.stars, 3)
        self.assertEqual(descriptor.language, "Python")
        self.assertEqual(descriptor.updated_at, "2024-01-02T03:04:05Z")
        self.assertTrue(descriptor.is_github_repo)
        self.assertFalse(descriptor.is_featured)

    def test_to_domain_prefers_platform_description(self) -> None:
        descriptor = GitHubTranslator.to_domain(_repo("tool", description="A handy tool"), "alice")

        self.assertEqual(descriptor.summary, "A handy tool")

    def test_missing_star_count_defaults_to_zero(self) -> None:
        descriptor = GitHubTranslator.to_domain(_repo("tool", stargazers_count=None), "alice")

        self.assertEqual(descriptor.stars, 0)
