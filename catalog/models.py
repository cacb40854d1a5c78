"""Pydantic models for a repository's description document."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_serializer, field_validator

from discovery.errors import ParseError
from discovery.repository_interface import TraceSink


class ServiceDescriptor(BaseModel):
    """One service published by a repository."""

    model_config = ConfigDict(frozen=True)

    name: StrictStr = Field(..., min_length=1, description="Service name, matched case-insensitively")
    urls: tuple[StrictStr, ...] = Field(..., min_length=1, description="Absolute endpoint URLs")
    version: Any = None
    metadata: Mapping[str, Any] = Field(default_factory=dict, validate_default=True,
                                        description="Any other entry fields, kept as-is (read-only)")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("service name must not be blank")
        return value

    @field_validator("metadata")
    @classmethod
    def _read_only_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("metadata")
    def _serialize_metadata(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    @property
    def url(self) -> str:
        """The primary endpoint URL."""
        return self.urls[0]

    def matches(self, name: str) -> bool:
        return self.name.casefold() == name.casefold()

    @classmethod
    def from_entry(cls, entry: Any, root_url: str | httpx.URL) -> ServiceDescriptor:
        """Build a descriptor from one raw ``services`` entry, resolving relative URLs."""
        if not isinstance(entry, Mapping):
            raise ParseError(f"Service entry must be an object, got {type(entry).__name__}")
        payload = dict(entry)
        if "url" in payload and "urls" in payload:
            raise ParseError("Service entry has both 'url' and 'urls'")
        raw_urls = payload.pop("urls", payload.pop("url", None))
        if raw_urls is None:
            raise ParseError(f"Service entry {payload.get('name')!r} has no 'url'")
        if isinstance(raw_urls, str):
            raw_urls = [raw_urls]
        if not isinstance(raw_urls, list) or not all(isinstance(u, str) and u.strip() for u in raw_urls):
            raise ParseError(f"Service entry {payload.get('name')!r} has invalid urls: {raw_urls!r}")

        base = httpx.URL(str(root_url))
        try:
            resolved = tuple(str(base.join(u.strip())) for u in raw_urls)
        except httpx.InvalidURL as exc:
            raise ParseError(f"Service entry {payload.get('name')!r} has an invalid url") from exc

        name = payload.pop("name", None)
        version = payload.pop("version", None)
        try:
            return cls.model_validate({"name": name, "urls": resolved, "version": version, "metadata": payload})
        except ValidationError as exc:
            raise ParseError(f"Invalid service entry: {exc}") from exc


class RepositoryDescription(BaseModel):
    """The parsed description document of a repository."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Absolute URL the description was loaded from")
    services: tuple[ServiceDescriptor, ...] = ()
    version: Any = None

    def find_service(self, name: str) -> ServiceDescriptor | None:
        """Return the first service whose name matches ``name`` ignoring case, or None."""
        return next((svc for svc in self.services if svc.matches(name)), None)

    @classmethod
    def from_document(cls, document: Any, trace: TraceSink, root_url: str | httpx.URL) -> RepositoryDescription:
        """
        Validate a parsed JSON document into a RepositoryDescription.

        The document must be an object with a ``services`` list. One malformed
        entry fails the whole parse with ParseError.
        """
        with trace.enter_exit("RepositoryDescription.from_document"):
            if not isinstance(document, Mapping):
                raise ParseError(f"Repository description must be an object, got {type(document).__name__}")
            if "services" not in document:
                raise ParseError("Repository description has no 'services' field")
            entries = document["services"]
            if not isinstance(entries, list):
                raise ParseError(f"'services' must be a list, got {type(entries).__name__}")
            services = tuple(ServiceDescriptor.from_entry(entry, root_url) for entry in entries)
            return cls(url=str(root_url), services=services, version=document.get("version"))


__all__ = [
    "RepositoryDescription",
    "ServiceDescriptor",
]
