from http import HTTPStatus
from urllib.parse import urlparse, urlunparse, urljoin

from crawler.models import ScopeMode

DEFAULT_PORTS = {"http": 80, "https": 443}


class LinkUtility:

    @staticmethod
    def normalize_url(url: str) -> str:
        """
        Identity form of an address:
        - lowercase scheme + host
        - default port dropped
        - empty path becomes "/"
        - fragment stripped, query kept as-is
        """
        if not url:
            return ""

        parsed = urlparse(url.strip())
        scheme = (parsed.scheme or "").lower()
        host = (parsed.hostname or "").lower()
        try:
            port = parsed.port
        except ValueError:
            port = None

        # IPv6 literals keep their brackets
        netloc = f"[{host}]" if ":" in host else host
        if parsed.username or parsed.password:
            auth = parsed.username or ""
            if parsed.password:
                auth += f":{parsed.password}"
            netloc = f"{auth}@{netloc}"
        if port is not None and DEFAULT_PORTS.get(scheme) != port:
            netloc = f"{netloc}:{port}"

        path = parsed.path or "/"

        return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ""))

    @staticmethod
    def origin(url: str) -> tuple:
        """(scheme, host, port) with the scheme's default port filled in."""
        parsed = urlparse(url)
        scheme = (parsed.scheme or "").lower()
        try:
            port = parsed.port
        except ValueError:
            port = None
        if port is None:
            port = DEFAULT_PORTS.get(scheme)
        return scheme, (parsed.hostname or "").lower(), port

    @classmethod
    def is_same_origin(cls, base_url: str, candidate_url: str) -> bool:
        return cls.origin(base_url) == cls.origin(candidate_url)

    @classmethod
    def is_base_of(cls, base_url: str, candidate_url: str) -> bool:
        """
        Same origin, and the candidate path lives under the base address's
        directory (everything up to and including its last "/").
        """
        if not cls.is_same_origin(base_url, candidate_url):
            return False
        base_path = urlparse(base_url).path or "/"
        directory = base_path[:base_path.rfind("/") + 1]
        candidate_path = urlparse(candidate_url).path or "/"
        return candidate_path.startswith(directory)

    @classmethod
    def resolve(cls, base_url: str, reference: str, scope: ScopeMode = ScopeMode.ORIGIN):
        """
        Resolve a raw reference found on `base_url`.
        Returns the normalized absolute address, or None when the reference is
        a bare fragment/query, not http(s), hostless or out of scope.
        """
        if reference is None:
            return None
        reference = reference.strip()
        if not reference or reference.startswith("#") or reference.startswith("?"):
            return None

        try:
            absolute = urljoin(base_url, reference)
            parsed = urlparse(absolute)
        except ValueError:
            return None

        if parsed.scheme not in ("http", "https"):
            return None
        if not parsed.hostname:
            return None

        if scope == ScopeMode.PATH:
            allowed = cls.is_base_of(base_url, absolute)
        else:
            allowed = cls.is_same_origin(base_url, absolute)
        if not allowed:
            return None

        return cls.normalize_url(absolute)


def status_description(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"
