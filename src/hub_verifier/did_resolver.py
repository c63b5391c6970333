"""
DID Documents and did:web resolution.

Resolves did:web identifiers to DID Documents per W3C DID specification and
exposes the parts the hub verifier needs: verification methods for issuer
keys and service entries for locating the subject's Identity Hub.
https://w3c-ccg.github.io/did-method-web/
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
from cachetools import TTLCache

log = logging.getLogger(__name__)

IDENTITY_HUB_SERVICE_TYPE = "IdentityHub"


class DIDResolutionError(Exception):
    """Raised when DID resolution fails."""


@dataclass(frozen=True)
class PublicKeyJWK:
    """EC public key in JWK format."""

    kty: str
    crv: str
    x: str
    y: str

    @classmethod
    def from_dict(cls, data: Any) -> PublicKeyJWK:
        """Build a key from a publicKeyJwk object.

        Raises:
            DIDResolutionError: If the JWK is not an object of string members.
        """
        if not isinstance(data, dict):
            raise DIDResolutionError("publicKeyJwk must be a JSON object")

        members = {name: data.get(name, "") for name in ("kty", "crv", "x", "y")}
        for name, value in members.items():
            if not isinstance(value, str):
                raise DIDResolutionError(f"publicKeyJwk member {name!r} must be a string")
        return cls(**members)

    def to_dict(self) -> dict[str, str]:
        return {"kty": self.kty, "crv": self.crv, "x": self.x, "y": self.y}

    def is_valid_p256(self) -> bool:
        """Check if this is a usable P-256 EC key."""
        return self.kty == "EC" and self.crv == "P-256" and bool(self.x) and bool(self.y)


@dataclass(frozen=True)
class VerificationMethod:
    """DID Document verification method."""

    id: str
    type: str
    controller: str
    public_key_jwk: PublicKeyJWK | None = None


@dataclass(frozen=True)
class Service:
    """DID Document service endpoint."""

    id: str
    type: str
    service_endpoint: str


@dataclass
class DIDDocument:
    """W3C DID Document."""

    id: str
    services: list[Service] = field(default_factory=list)
    verification_methods: list[VerificationMethod] = field(default_factory=list)
    authentication: list[str] = field(default_factory=list)
    assertion_method: list[str] = field(default_factory=list)

    def get_verification_method(self, method_id: str) -> VerificationMethod | None:
        """Get a verification method by ID.

        Relative references (``#key-1``) are matched against the document id.
        """
        if method_id.startswith("#"):
            method_id = self.id + method_id
        for vm in self.verification_methods:
            if vm.id == method_id:
                return vm
        return None

    def get_service(self, service_type: str) -> Service | None:
        """Return the first service of the given type, if any."""
        for service in self.services:
            if service.type == service_type:
                return service
        return None

    @property
    def identity_hub_url(self) -> str | None:
        service = self.get_service(IDENTITY_HUB_SERVICE_TYPE)
        return service.service_endpoint if service else None


class DIDResolver:
    """Resolver for did:web DID method."""

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        cache_size: int = 1000,
        cache_ttl: float = 300.0,
    ) -> None:
        """Initialize the DID resolver.

        Args:
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            cache_size: Maximum number of cached DID Documents.
            cache_ttl: Seconds a resolved DID Document stays cached.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._cache: TTLCache[str, DIDDocument] = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self._cache_lock = threading.Lock()

    def _did_to_url(self, did: str) -> str:
        """Convert a did:web identifier to its resolution URL.

        did:web:example.com -> https://example.com/.well-known/did.json
        did:web:example.com:path:to:doc -> https://example.com/path/to/doc/did.json
        did:web:example.com%3A8080 -> https://example.com:8080/.well-known/did.json

        Raises:
            DIDResolutionError: If the DID format is invalid.
        """
        if not did.startswith("did:web:"):
            raise DIDResolutionError(f"Invalid did:web identifier: {did}")

        # Remove the did:web: prefix and any fragment
        domain_path = did[len("did:web:"):].split("#")[0]
        if not domain_path:
            raise DIDResolutionError(f"Invalid did:web identifier: {did}")

        # Split by colon to get path segments
        parts = domain_path.split(":")

        # First part is the domain (with potential port encoded as %3A)
        domain = parts[0].replace("%3A", ":")

        # Remaining parts form the path
        if len(parts) > 1:
            path = "/" + "/".join(quote(p, safe="") for p in parts[1:]) + "/did.json"
        else:
            path = "/.well-known/did.json"

        return f"https://{domain}{path}"

    def resolve(self, did: str, use_cache: bool = True) -> DIDDocument:
        """Resolve a did:web identifier to its DID Document.

        Args:
            did: The did:web identifier (e.g., "did:web:example.com").
            use_cache: Whether to use cached results.

        Returns:
            The resolved DIDDocument.

        Raises:
            DIDResolutionError: If resolution fails.
        """
        # Normalize DID (remove fragment for caching)
        base_did = did.split("#")[0]

        # Check cache
        if use_cache:
            with self._cache_lock:
                cached = self._cache.get(base_did)
            if cached is not None:
                return cached

        # Build resolution URL
        url = self._did_to_url(did)
        log.debug("Resolving %s from %s", base_did, url)

        try:
            with httpx.Client(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = client.get(
                    url,
                    headers={"Accept": "application/did+ld+json, application/json"},
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            raise DIDResolutionError(
                f"HTTP error resolving {did}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise DIDResolutionError(f"Network error resolving {did}: {e}") from e
        except ValueError as e:
            raise DIDResolutionError(f"Invalid JSON in DID Document for {did}") from e

        # Parse the DID Document
        doc = parse_did_document(data, base_did)

        # Cache the result
        if use_cache:
            with self._cache_lock:
                self._cache[base_did] = doc

        return doc

    def clear_cache(self) -> None:
        """Clear the resolution cache."""
        with self._cache_lock:
            self._cache.clear()


def parse_did_document(data: Any, did: str | None = None) -> DIDDocument:
    """Parse a DID Document from JSON.

    Args:
        data: The raw JSON data.
        did: The expected DID. Not checked when omitted.

    Raises:
        DIDResolutionError: If the document is invalid.
    """
    if not isinstance(data, dict):
        raise DIDResolutionError("DID Document must be a JSON object")

    doc_id = data.get("id", "")
    if not isinstance(doc_id, str):
        raise DIDResolutionError("DID Document id must be a string")
    if did is not None and doc_id != did:
        raise DIDResolutionError(
            f"DID Document id mismatch: expected {did}, got {doc_id}"
        )

    verification_methods: list[VerificationMethod] = []
    for vm_data in _list_member(data, "verificationMethod"):
        if not isinstance(vm_data, dict):
            raise DIDResolutionError("verificationMethod entries must be JSON objects")

        public_key_jwk = None
        if "publicKeyJwk" in vm_data:
            public_key_jwk = PublicKeyJWK.from_dict(vm_data["publicKeyJwk"])

        vm_id = vm_data.get("id", "")
        if not isinstance(vm_id, str):
            raise DIDResolutionError("verificationMethod id must be a string")

        verification_methods.append(VerificationMethod(
            id=vm_id,
            type=str(vm_data.get("type", "")),
            controller=str(vm_data.get("controller", "")),
            public_key_jwk=public_key_jwk,
        ))

    return DIDDocument(
        id=doc_id,
        services=_parse_services(_list_member(data, "service")),
        verification_methods=verification_methods,
        authentication=_parse_verification_relationship(_list_member(data, "authentication")),
        assertion_method=_parse_verification_relationship(_list_member(data, "assertionMethod")),
    )


def _list_member(data: dict[str, Any], name: str) -> list[Any]:
    value = data.get(name, [])
    if not isinstance(value, list):
        raise DIDResolutionError(f"DID Document {name} must be an array")
    return value


def _parse_services(items: list[Any]) -> list[Service]:
    """Parse service entries.

    Entries without a string serviceEndpoint (maps, lists) are skipped, since
    the hub verifier can only call a single URL.
    """
    services: list[Service] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        endpoint = item.get("serviceEndpoint")
        if not isinstance(endpoint, str):
            log.debug("Skipping service %s with non-URL endpoint", item.get("id"))
            continue
        services.append(Service(
            id=item.get("id", ""),
            type=item.get("type", ""),
            service_endpoint=endpoint,
        ))
    return services


def _parse_verification_relationship(items: list[Any]) -> list[str]:
    """Parse a verification relationship array.

    Items can be either strings (references) or objects (embedded methods).
    We only extract the ID references.
    """
    result: list[str] = []
    for item in items:
        if isinstance(item, str):
            result.append(item)
        elif isinstance(item, dict) and "id" in item:
            result.append(item["id"])
    return result
