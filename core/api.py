"""API target descriptors."""

from dataclasses import dataclass

API_PATH = "/api/bmc"


@dataclass(frozen=True)
class ApiTarget:
    """Base URL of the controller's management API."""

    base_url: str

    @classmethod
    def from_host(cls, host: str, scheme: str = "https") -> "ApiTarget":
        """Build the target for a controller reachable at ``host``."""
        host = host.strip().rstrip("/")
        if "://" in host:
            scheme, host = host.split("://", 1)
        return cls(f"{scheme}://{host}{API_PATH}")

    def url(self, path: str = "") -> str:
        """Join a relative path onto the base URL."""
        if not path:
            return self.base_url
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
