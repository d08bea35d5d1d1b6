"""Check image availability through the Docker Registry HTTP API v2."""

from __future__ import annotations

import json
import re
import time
from typing import Any, Iterator
from urllib.parse import quote_plus, urlsplit, urlunsplit

import requests

DOCKER_HUB_HOST = "registry-1.docker.io"

MEDIA_TYPE_DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_IMAGE_CONFIG = "application/vnd.docker.container.image.v1+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_CONFIG = "application/vnd.oci.image.config.v1+json"

_INDEX_TYPES = (MEDIA_TYPE_OCI_INDEX, MEDIA_TYPE_DOCKER_MANIFEST_LIST)
_MANIFEST_TYPES = (MEDIA_TYPE_DOCKER_MANIFEST, MEDIA_TYPE_OCI_MANIFEST)
_DEPRECATED_TYPES = (
    "application/vnd.docker.distribution.manifest.v1+prettyjws",
    "application/vnd.docker.distribution.manifest.v1+json",
)

_MANIFEST_ACCEPT = ", ".join(
    (
        MEDIA_TYPE_DOCKER_MANIFEST_LIST,
        MEDIA_TYPE_OCI_INDEX,
        MEDIA_TYPE_DOCKER_MANIFEST,
        MEDIA_TYPE_OCI_MANIFEST,
    )
)
_CONFIG_ACCEPT = ", ".join((MEDIA_TYPE_DOCKER_IMAGE_CONFIG, MEDIA_TYPE_OCI_CONFIG))

_AUTH_PART = re.compile(r'[a-zA-Z0-9_]+="[^"]*"')


class RegistryError(Exception):
    """A registry request failed or returned something unusable."""


class DeprecatedManifestError(RegistryError):
    """The image uses a deprecated (schema v1) manifest."""


class PullRateLimitExceededError(RegistryError):
    """The registry kept refusing requests because of its pull rate limit."""


def _status(resp: requests.Response) -> str:
    return f"{resp.status_code} {resp.reason or ''}".strip()


def _match(want: str, got: str) -> bool:
    # an empty expectation is not checked
    return want == "" or want == got


def _decode(body: bytes, what: str) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except ValueError as err:
        raise RegistryError(f"{what} decode error: {err}") from err
    if not isinstance(data, dict):
        raise RegistryError(f"{what} decode error: not a JSON object")
    return data


def parse_content_type(content_type: str) -> str:
    """Return the media type of a Content-Type header, without parameters."""
    return content_type.split(";", 1)[0]


def parse_auth_header(bearer: str) -> tuple[str, str, str]:
    """Extract realm, service and scope from the parameters of a Bearer challenge."""
    parsed: dict[str, str] = {}
    for part in _AUTH_PART.findall(bearer):
        key, _, value = part.partition("=")
        parsed[key] = value[1:-1]
    return parsed.get("realm", ""), parsed.get("service", ""), parsed.get("scope", "")


class Repository:
    """A repository in a registry, on Docker Hub unless the image names a host."""

    def __init__(
        self,
        image: str,
        user: str = "",
        password: str = "",
        *,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        min_delay: float = 1.0,
        max_delay: float = 5.0,
        max_attempts: int = 3,
    ) -> None:
        self.user = user
        self.password = password
        self.token = ""
        self.timeout = timeout
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._session = session or requests.Session()

        first, sep, rest = image.partition("/")
        if "." in first and sep:
            self.host = first
            self.repo = rest
        else:
            if "/" not in image:
                image = "library/" + image
            self.host = DOCKER_HUB_HOST
            self.repo = image

    def _attempts(self) -> Iterator[int]:
        delay = self.min_delay
        for attempt in range(self.max_attempts):
            if attempt:
                time.sleep(delay)
                delay = min(delay * 2, self.max_delay)
            yield attempt

    def _auth_headers(self) -> dict[str, str]:
        if self.user == "AWS" and self.password:
            return {"Authorization": "Basic " + self.password}
        if self.token:
            return {"Authorization": "Bearer " + self.token}
        return {}

    def _login(self, endpoint: str, service: str, scope: str) -> None:
        parts = urlsplit(endpoint)
        query = f"service={quote_plus(service)}&scope={quote_plus(scope)}"
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
        auth = (self.user, self.password) if self.user and self.password else None
        resp = self._session.get(url, auth=auth, timeout=self.timeout)
        if resp.status_code != 200:
            raise RegistryError(f"login failed {_status(resp)}")
        body = _decode(resp.content, "login response")
        value = body.get("Token")
        if value is None:
            value = next((v for k, v in body.items() if k.lower() == "token"), None)
        if not isinstance(value, str) or not value:
            raise RegistryError("response does not contains token")
        self.token = value

    def _fetch_manifests(self, method: str, tag: str) -> requests.Response:
        url = f"https://{self.host}/v2/{self.repo}/manifests/{tag}"
        headers = {"Accept": _MANIFEST_ACCEPT, **self._auth_headers()}
        return self._session.request(
            method, url, headers=headers, timeout=self.timeout, allow_redirects=True
        )

    def _availability(self, tag: str) -> requests.Response:
        for _ in self._attempts():
            resp = self._fetch_manifests("HEAD", tag)
            resp.close()
            if resp.status_code != 429:
                return resp
        raise PullRateLimitExceededError(
            "failed to fetch manifests: image pull rate limit exceeded"
        )

    def _manifests(self, tag: str) -> tuple[str, bytes]:
        last_error: RegistryError | None = None
        for _ in self._attempts():
            resp = self._fetch_manifests("GET", tag)
            if resp.status_code == 200:
                return parse_content_type(resp.headers.get("Content-Type", "")), resp.content
            if resp.status_code in (401, 404):
                raise RegistryError(
                    f"failed to fetch manifests: {_status(resp)} {resp.status_code}"
                )
            if resp.status_code == 429:
                last_error = PullRateLimitExceededError("image pull rate limit exceeded")
            else:
                last_error = RegistryError(_status(resp))
        if isinstance(last_error, PullRateLimitExceededError):
            raise PullRateLimitExceededError(f"failed to fetch manifests: {last_error}")
        raise RegistryError(f"failed to fetch manifests: {last_error}")

    def _image_config(self, digest: str) -> bytes:
        url = f"https://{self.host}/v2/{self.repo}/blobs/{digest}"
        headers = {"Accept": _CONFIG_ACCEPT, **self._auth_headers()}
        resp = self._session.get(url, headers=headers, timeout=self.timeout)
        if resp.status_code != 200:
            raise RegistryError(_status(resp))
        return resp.content

    def has_image(self, tag: str) -> bool:
        """Tell whether the tag exists, logging in once if the registry asks for it."""
        for _ in range(2):
            resp = self._availability(tag)
            if resp.status_code == 401:
                challenge = resp.headers.get("Www-Authenticate", "")
                if challenge.startswith("Bearer "):
                    realm, service, scope = parse_auth_header(challenge.split(" ", 1)[1])
                    self._login(realm, service, scope)
            elif resp.status_code == 200:
                return True
            else:
                raise RegistryError(_status(resp))
        raise RegistryError("aborted")

    def has_platform_image(self, tag: str, arch: str, os: str) -> bool:
        """Tell whether the tag has an image for the architecture and OS.

        An empty ``arch`` or ``os`` matches anything.
        """
        media_type, body = self._manifests(tag)
        if media_type in _INDEX_TYPES:
            index = _decode(body, "manifest list")
            for desc in index.get("manifests") or ():
                if not isinstance(desc, dict):
                    continue
                platform = desc.get("platform")
                if platform is None:
                    # not platform specific
                    return True
                if _match(arch, platform.get("architecture", "")) and _match(
                    os, platform.get("os", "")
                ):
                    return True
        elif media_type in _MANIFEST_TYPES:
            manifest = _decode(body, "manifest")
            config = manifest.get("config") or {}
            platform = config.get("platform")
            if platform is not None and _match(arch, platform.get("os", "")) and _match(
                os, platform.get("architecture", "")
            ):
                return True
            image = _decode(self._image_config(config.get("digest", "")), "image config")
            if _match(arch, image.get("architecture", "")) and _match(os, image.get("os", "")):
                return True
        elif media_type in _DEPRECATED_TYPES:
            raise DeprecatedManifestError("deprecated image manifest")
        else:
            raise RegistryError(f"unknown MediaType {media_type}")
        return False