"""Marketplace source strings.

Marketplaces are referenced as GitHub ``owner/repo`` shorthands, optionally
pinned to a branch or tag with ``#ref``.
"""

from urllib.parse import urlparse

from plum.config.schemas import ExtraMarketplace, MarketplaceSource


class InvalidSourceError(ValueError):
    """A repository reference cannot be understood."""


def derive_source(repo_url: str) -> str:
    """Reduce a repository URL to the shorthand used in settings.

    ``https://github.com/owner/repo.git`` becomes ``owner/repo``; URLs on other
    hosts are returned unchanged.

    Raises:
        InvalidSourceError: If the URL is empty or has no scheme or host
    """
    if not repo_url:
        raise InvalidSourceError("empty repo URL")

    parsed = urlparse(repo_url)
    if not parsed.scheme or not parsed.netloc:
        raise InvalidSourceError(f"invalid repo URL (missing scheme or host): {repo_url}")

    if parsed.netloc == "github.com":
        path = parsed.path.strip("/").removesuffix(".git")
        parts = path.split("/")
        if len(parts) >= 2 and parts[0] and parts[1]:
            return f"{parts[0]}/{parts[1]}"
        raise InvalidSourceError(f"invalid GitHub path: {parsed.path}")

    return repo_url


def is_github_repo(repo_url: str) -> bool:
    return urlparse(repo_url).netloc == "github.com"


def parse_marketplace_arg(value: str) -> tuple[str, ExtraMarketplace]:
    """Parse ``owner/repo[#ref]`` into a marketplace name and settings entry.

    The marketplace is named after the repository.

    Returns:
        (name, entry) where entry is ``{"source": {"source": "github", "repo": ...}}``

    Raises:
        InvalidSourceError: If the value is not ``owner/repo``
    """
    repo, ref = value, ""
    idx = value.rfind("#")
    if idx > 0:
        repo, ref = value[:idx], value[idx + 1 :]

    if "/" not in repo:
        raise InvalidSourceError(f"invalid repo format: expected owner/repo, got {repo}")
    if repo.startswith(("http://", "https://")):
        repo = derive_source(repo)

    name = repo.rstrip("/").split("/")[-1]
    if not name:
        raise InvalidSourceError(f"invalid repo format: expected owner/repo, got {repo}")

    full_repo = f"{repo}#{ref}" if ref else repo
    return name, ExtraMarketplace(source=MarketplaceSource(source="github", repo=full_repo))
