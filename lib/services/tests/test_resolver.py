"""
Tests for RepositoryFilter and RepositoryResolver.
"""

import pytest
from pydantic import ValidationError

from gitops_core.errors import RateLimitError
from gitops_core.models import Repository
from gitops_services import RepositoryFilter, RepositoryResolver

# region Fixtures


@pytest.fixture
def resolver(client, logger) -> RepositoryResolver:
    return RepositoryResolver(client, logger)


@pytest.fixture
def organizations(fake_github):
    for name in ("api", "web", "admin-ui"):
        fake_github.add_repository("acme", name, {"README.md": b"x"})
    fake_github.add_repository("acme", "forked", {"README.md": b"x"}, fork=True)
    fake_github.add_repository("acme", "legacy", {"README.md": b"x"}, archived=True)
    fake_github.add_repository("globex", "api", {"README.md": b"x"})
    return fake_github


def names(resolved) -> list[str]:
    return [r.full_name for r in resolved.repositories]


# endregion
# region Test RepositoryFilter


class TestRepositoryFilter:
    def test_defaults_skip_forks_and_archived(self):
        f = RepositoryFilter()
        assert f.matches(Repository(owner="a", name="x"))
        assert not f.matches(Repository(owner="a", name="x", fork=True))
        assert not f.matches(Repository(owner="a", name="x", archived=True))
        assert not f.matches(Repository(owner="a", name="x", disabled=True))
        assert RepositoryFilter(include_forks=True).matches(
            Repository(owner="a", name="x", fork=True)
        )

    def test_pattern_is_searched(self):
        f = RepositoryFilter(pattern="ui$")
        assert f.matches(Repository(owner="a", name="admin-ui"))
        assert not f.matches(Repository(owner="a", name="api"))

    def test_include_overrides_pattern(self):
        f = RepositoryFilter(pattern="^web$", include=["api"])
        assert f.matches(Repository(owner="a", name="api"))
        assert not f.matches(Repository(owner="a", name="web"))

    def test_exclude_wins(self):
        f = RepositoryFilter(include=["api"], exclude=["api"])
        assert not f.matches(Repository(owner="a", name="api"))

    def test_invalid_pattern(self):
        with pytest.raises(ValidationError):
            RepositoryFilter(pattern="(")


# endregion
# region Test RepositoryResolver


class TestRepositoryResolver:
    def test_organizations_in_order(self, resolver, organizations):
        resolved = resolver.resolve(["globex", "acme"])
        assert names(resolved) == ["globex/api", "acme/api", "acme/web", "acme/admin-ui"]
        assert resolved.warnings == []

    def test_filters_apply_per_organization(self, resolver, organizations):
        resolved = resolver.resolve(["acme", "globex"], RepositoryFilter(pattern="^api$"))
        assert names(resolved) == ["acme/api", "globex/api"]

    def test_duplicate_organizations_listed_once(self, resolver, organizations):
        resolved = resolver.resolve(["acme", "acme"])
        assert len(resolved.repositories) == 3
        assert organizations.count("GET", "/orgs/acme/repos") == 1

    @pytest.mark.parametrize("status", [404, 403, 500])
    def test_unavailable_organization_is_a_warning(self, resolver, organizations, status):
        organizations.organization_status["broken"] = status
        resolved = resolver.resolve(["broken", "globex"])
        assert names(resolved) == ["globex/api"]
        assert len(resolved.warnings) == 1
        assert "broken" in resolved.warnings[0]

    def test_rate_limit_propagates(self, resolver, organizations):
        organizations.organization_status["acme"] = 429
        with pytest.raises(RateLimitError):
            resolver.resolve(["globex", "acme"])


# endregion
