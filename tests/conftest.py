"""Shared fixtures: P-256 keys, DID Documents and signed JWT credentials."""

import base64
import json
import time
import uuid

import pytest

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from hub_verifier.did_resolver import DIDDocument, Service

ISSUER = "did:web:issuer.example.com"
SUBJECT = "did:web:holder.example.com"
HUB_BASE_URL = "https://hub.example.com/identity-hub"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def sign_jwt(claims: dict, private_key, header: dict | None = None) -> str:
    """Sign a claims set as a compact ES256 JWS."""
    header = {"alg": "ES256", "typ": "JWT", **(header or {})}
    signing_input = (
        b64url(json.dumps(header).encode()) + "." + b64url(json.dumps(claims).encode())
    )
    der = private_key.sign(signing_input.encode("ascii"), ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    signature = r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")
    return signing_input + "." + b64url(signature)


def generate_verifiable_credential(**subject_claims) -> dict:
    return {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "id": f"urn:uuid:{uuid.uuid4()}",
        "type": ["VerifiableCredential"],
        "issuanceDate": "2025-01-01T00:00:00Z",
        "credentialSubject": {"id": SUBJECT, **(subject_claims or {"region": "eu"})},
    }


@pytest.fixture
def ec_key_pair():
    """Generate a test EC P-256 key pair."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


@pytest.fixture
def public_key_jwk(ec_key_pair):
    """Get the public key as JWK."""
    _, public_key = ec_key_pair
    public_numbers = public_key.public_numbers()
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": b64url(public_numbers.x.to_bytes(32, byteorder="big")),
        "y": b64url(public_numbers.y.to_bytes(32, byteorder="big")),
    }


@pytest.fixture
def issuer_did_json(public_key_jwk):
    """did:web document of the credential issuer."""
    return {
        "@context": [
            "https://www.w3.org/ns/did/v1",
            "https://w3id.org/security/jwk/v1",
        ],
        "id": ISSUER,
        "verificationMethod": [
            {
                "id": f"{ISSUER}#key-1",
                "type": "JsonWebKey2020",
                "controller": ISSUER,
                "publicKeyJwk": public_key_jwk,
            }
        ],
        "assertionMethod": [f"{ISSUER}#key-1"],
    }


@pytest.fixture
def subject_did_document():
    """Holder DID Document advertising an Identity Hub."""
    return DIDDocument(
        id=SUBJECT,
        services=[Service(id="#hub", type="IdentityHub", service_endpoint=HUB_BASE_URL)],
    )


@pytest.fixture
def credential_jwt(ec_key_pair):
    """Build signed credential JWTs for SUBJECT issued by ISSUER."""
    private_key, _ = ec_key_pair

    def build(vc: dict | None = None, **claims) -> str:
        now = int(time.time())
        payload = {
            "iss": ISSUER,
            "sub": SUBJECT,
            "iat": now,
            "exp": now + 3600,
            "vc": vc if vc is not None else generate_verifiable_credential(),
        }
        payload.update(claims)
        return sign_jwt(payload, private_key, {"kid": f"{ISSUER}#key-1"})

    return build
