"""
Latest-version collection from upstream sources.

One collector per VersionSource kind, dispatched through a type-keyed table.
Every fetch goes through a shared HttpClient with a fixed per-request
timeout; nothing is retried or cached.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable

from .common import ErrorKind
from .environment import Arch, OSFamily, Platform
from .tools import (
    ReleaseApiSource,
    RegistryPackageSource,
    SourceIndexSource,
    ToolDefinition,
    UnknownSource,
    VendorManifestSource,
    VendorUpdateSource,
    VersionSource,
)

logger = logging.getLogger(__name__)


DEFAULT_HTTP_TIMEOUT = 10
DEFAULT_USER_AGENT = "cli-manager/1.0"

NPM_REGISTRY_URL = "https://registry.npmjs.org"
GITHUB_API_URL = "https://api.github.com"
PYPI_URL = "https://pypi.org/pypi"
VSCODE_UPDATE_URL = "https://update.code.visualstudio.com/api/update"

# First non-empty wins
GITHUB_TOKEN_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


class CollectionError(Exception):
    """Raised when version collection fails."""
    pass


class NetworkError(CollectionError):
    """Raised when network requests fail."""
    pass


class ParseError(CollectionError):
    """Raised when response parsing fails."""
    pass


class UnknownVersionSourceError(CollectionError):
    """Raised for a version source type no collector implements."""
    pass


@dataclass(frozen=True)
class VersionLookup:
    """
    Result of a version lookup that may legitimately come back empty.

    Expected absences (tool not installed, remote unavailable) are carried
    here instead of being raised.

    Attributes:
        version: Version string, empty if unresolved
        error: Human-readable reason when version is empty
        error_kind: Classification of the absence
    """
    version: str = ""
    error: str = ""
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return bool(self.version)

    @classmethod
    def found(cls, version: str) -> VersionLookup:
        return cls(version=version)

    @classmethod
    def missing(cls, error: str, error_kind: ErrorKind) -> VersionLookup:
        return cls(error=error, error_kind=error_kind)


class HttpClient:
    """
    Shared HTTP client for version lookups.

    Configuration is fixed at construction; one opener is built once and
    reused by every thread.
    """

    def __init__(self, timeout: float = DEFAULT_HTTP_TIMEOUT, user_agent: str = DEFAULT_USER_AGENT):
        self._timeout = timeout
        self._user_agent = user_agent
        self._opener = urllib.request.build_opener()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def get_bytes(self, url: str, headers: dict[str, str] | None = None) -> bytes:
        """Perform HTTP GET request.

        Args:
            url: URL to fetch
            headers: Optional HTTP headers

        Returns:
            Response body as bytes

        Raises:
            NetworkError: On transport failure or non-2xx status
        """
        request_headers = {"User-Agent": self._user_agent}
        if headers:
            request_headers.update(headers)

        req = urllib.request.Request(url, headers=request_headers)
        try:
            with self._opener.open(req, timeout=self._timeout) as response:
                status = getattr(response, "status", 200)
                if status < 200 or status >= 300:
                    raise NetworkError(f"Failed to fetch {url}: HTTP {status}")
                return response.read()
        except urllib.error.HTTPError as e:
            raise NetworkError(f"Failed to fetch {url}: HTTP {e.code}") from e
        except NetworkError:
            raise
        except Exception as e:
            raise NetworkError(f"Failed to fetch {url}: {e}") from e

    def get_text(self, url: str, headers: dict[str, str] | None = None) -> str:
        return self.get_bytes(url, headers).decode("utf-8", "replace")

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        """GET a URL and decode its JSON body.

        Raises:
            NetworkError: If the request fails
            ParseError: If the body is not valid JSON
        """
        body = self.get_bytes(url, headers)
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ParseError(f"Invalid JSON from {url}: {e}") from e


def _field(data: Any, *path: str, url: str) -> str:
    """Walk nested mappings and return a non-empty string leaf."""
    node = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise ParseError(f"Missing '{'.'.join(path)}' in response from {url}")
        node = node[key]
    if not isinstance(node, str) or not node.strip():
        raise ParseError(f"Empty '{'.'.join(path)}' in response from {url}")
    return node.strip()


def collect_npm(source: RegistryPackageSource, client: HttpClient, platform: Platform | None = None) -> str:
    """Collect latest version from the npm registry (dist-tags.latest)."""
    # Scoped packages keep their "@" but encode the slash
    package = urllib.parse.quote(source.package, safe="@")
    url = f"{NPM_REGISTRY_URL}/{package}"
    version = _field(client.get_json(url), "dist-tags", "latest", url=url)
    logger.debug(f"npm {source.package}: {version}")
    return version


def github_auth_headers(environ: dict[str, str] | None = None) -> dict[str, str]:
    """
    Build headers for the GitHub releases API.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Accept header, plus a Bearer token from GITHUB_TOKEN or GH_TOKEN if set
    """
    environ = os.environ if environ is None else environ
    headers = {"Accept": "application/vnd.github.v3+json"}
    for var in GITHUB_TOKEN_VARS:
        token = (environ.get(var) or "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"
            break
    return headers


def collect_github(source: ReleaseApiSource, client: HttpClient, platform: Platform | None = None) -> str:
    """Collect latest release tag from GitHub, with a leading "v" stripped."""
    url = f"{GITHUB_API_URL}/repos/{source.owner}/{source.repo}/releases/latest"
    tag = _field(client.get_json(url, headers=github_auth_headers()), "tag_name", url=url)
    version = tag[1:] if tag[:1] in ("v", "V") else tag
    if not version:
        raise ParseError(f"Empty tag_name in response from {url}")
    logger.debug(f"GitHub {source.owner}/{source.repo}: {version}")
    return version


def collect_pypi(source: SourceIndexSource, client: HttpClient, platform: Platform | None = None) -> str:
    """Collect latest version from PyPI (info.version)."""
    url = f"{PYPI_URL}/{source.package}/json"
    version = _field(client.get_json(url), "info", "version", url=url)
    logger.debug(f"PyPI {source.package}: {version}")
    return version


def vscode_platform_segment(platform: Platform | None) -> str:
    """
    Platform segment of the VS Code update URL.

    Args:
        platform: Host platform (None falls back to the Windows user build)

    Returns:
        e.g. "win32-x64-user", "darwin-universal", "linux-x64"
    """
    if platform is None:
        return "win32-x64-user"
    if platform.os is OSFamily.DARWIN:
        return "darwin-universal"
    if platform.os is OSFamily.LINUX:
        return "linux-arm64" if platform.arch is Arch.ARM64 else "linux-x64"
    if platform.os is OSFamily.WINDOWS and platform.arch is Arch.ARM64:
        return "win32-arm64-user"
    return "win32-x64-user"


def collect_vscode(source: VendorUpdateSource, client: HttpClient, platform: Platform | None = None) -> str:
    """Collect latest VS Code build for the host platform and channel."""
    channel = source.channel or "stable"
    url = f"{VSCODE_UPDATE_URL}/{vscode_platform_segment(platform)}/{channel}/latest"
    product_version = _field(client.get_json(url), "productVersion", url=url)
    version = product_version.split("-", 1)[0].strip()
    if not version:
        raise ParseError(f"Unusable productVersion {product_version!r} from {url}")
    logger.debug(f"VS Code {channel}: {version}")
    return version


def parse_manifest_version(text: str) -> str:
    """
    Extract the ``version:`` value from line-oriented manifest text.

    Args:
        text: Manifest body

    Returns:
        Trimmed version value

    Raises:
        ParseError: If no non-empty version key is present
    """
    for line in text.splitlines():
        key, sep, value = line.strip().partition(":")
        if sep and key.strip() == "version":
            value = value.strip().strip("'\"")
            if value:
                return value
    raise ParseError("No 'version:' entry in manifest")


def collect_manifest(source: VendorManifestSource, client: HttpClient, platform: Platform | None = None) -> str:
    """Collect latest version from a vendor's key: value manifest."""
    try:
        version = parse_manifest_version(client.get_text(source.url))
    except ParseError as e:
        raise ParseError(f"{e} at {source.url}") from e
    logger.debug(f"Manifest {source.url}: {version}")
    return version


def collect_unknown(source: UnknownSource, client: HttpClient, platform: Platform | None = None) -> str:
    raise UnknownVersionSourceError(f"Unknown version source type: {source.type_name}")


Collector = Callable[[Any, HttpClient, "Platform | None"], str]

COLLECTORS: dict[type, Collector] = {
    RegistryPackageSource: collect_npm,
    ReleaseApiSource: collect_github,
    SourceIndexSource: collect_pypi,
    VendorUpdateSource: collect_vscode,
    VendorManifestSource: collect_manifest,
    UnknownSource: collect_unknown,
}


def fetch_latest_version(
    source: VersionSource,
    client: HttpClient,
    platform: Platform | None = None,
) -> str:
    """
    Fetch the latest published version for a version source.

    Args:
        source: Tool's declared version source
        client: Shared HTTP client
        platform: Host platform (selects platform-specific vendor builds)

    Returns:
        Latest version string

    Raises:
        CollectionError: NetworkError, ParseError, or UnknownVersionSourceError
    """
    collector = COLLECTORS.get(type(source))
    if collector is None:
        raise UnknownVersionSourceError(f"No collector for {type(source).__name__}")
    return collector(source, client, platform)


def get_latest_version(
    tool: ToolDefinition,
    client: HttpClient,
    platform: Platform | None = None,
) -> VersionLookup:
    """
    Resolve a tool's latest version without raising.

    Args:
        tool: Tool definition
        client: Shared HTTP client
        platform: Host platform

    Returns:
        VersionLookup; failures carry REMOTE_VERSION_UNAVAILABLE or
        UNKNOWN_VERSION_SOURCE
    """
    try:
        return VersionLookup.found(fetch_latest_version(tool.version_source, client, platform))
    except UnknownVersionSourceError as e:
        logger.debug(f"{tool.key}: {e}")
        return VersionLookup.missing(str(e), ErrorKind.UNKNOWN_VERSION_SOURCE)
    except CollectionError as e:
        logger.debug(f"{tool.key}: latest version unavailable: {e}")
        return VersionLookup.missing(str(e), ErrorKind.REMOTE_VERSION_UNAVAILABLE)
