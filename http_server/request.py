from dataclasses import dataclass, field
from urllib.parse import unquote, unquote_to_bytes


@dataclass
class Request:
    method: str
    path: str
    headers: dict[str, str]
    query_params: dict[str, list]
    body: bytes
    version: str
    # Captured by the route pattern, still percent-encoded
    path_params: dict[str, str] = field(default_factory=dict)

    def param(self, name: str) -> str | None:
        if not name:
            raise ValueError("Parameter name cannot be empty")

        raw = self.path_params.get(name)
        return None if raw is None else unquote(raw)

    def param_bytes(self, name: str) -> bytes | None:
        """Path parameter percent-decoded straight to bytes"""
        if not name:
            raise ValueError("Parameter name cannot be empty")

        raw = self.path_params.get(name)
        return None if raw is None else unquote_to_bytes(raw)

