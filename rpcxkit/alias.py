"""A server plugin that maps alias service names onto real ones."""

from __future__ import annotations

from typing import Any

ALIAS_APPLIED_KEY = "__aliasAppliedKey"


class AliasPlugin:
    """Rewrites aliased requests and restores the alias on the response."""

    def __init__(self) -> None:
        self.aliases: dict[str, tuple[str, str]] = {}
        self.reverse_aliases: dict[str, tuple[str, str]] = {}

    def alias(
        self,
        alias_service_path: str,
        alias_service_method: str,
        service_path: str,
        service_method: str,
    ) -> None:
        """Make ``alias_service_path.alias_service_method`` call ``service_path.service_method``."""
        self.aliases[f"{alias_service_path}.{alias_service_method}"] = (
            service_path,
            service_method,
        )
        self.reverse_aliases[f"{service_path}.{service_method}"] = (
            alias_service_path,
            alias_service_method,
        )

    def post_read_request(self, ctx: Any, req: Any, err: Exception | None) -> None:
        """Replace an aliased service path and method with the real ones."""
        pair = self.aliases.get(f"{req.service_path}.{req.service_method}")
        if pair is None:
            return
        req.service_path, req.service_method = pair
        if req.metadata is None:
            req.metadata = {}
        req.metadata[ALIAS_APPLIED_KEY] = "true"

    def pre_write_response(self, ctx: Any, req: Any, res: Any) -> None:
        """Put the alias back on the request and response of an aliased call."""
        if not req.metadata or req.metadata.get(ALIAS_APPLIED_KEY) != "true":
            return
        pair = self.reverse_aliases.get(f"{req.service_path}.{req.service_method}")
        if pair is None:
            return
        req.service_path, req.service_method = pair
        del req.metadata[ALIAS_APPLIED_KEY]
        if res is not None:
            res.service_path, res.service_method = pair