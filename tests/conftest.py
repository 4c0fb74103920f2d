import os
import tempfile

# keep the module-level app's default registry out of the working tree
os.environ.setdefault("KEY_REGISTRY_DB", os.path.join(tempfile.mkdtemp(prefix="sealcodes-"), "keys.db"))

import pytest
from fastapi.testclient import TestClient

from sealcodes.app import create_app
from sealcodes.attestation.builder import build_package
from sealcodes.attestation.model import DocumentHashes, ExclusionZone, Identity
from sealcodes.signing.auth import StaticIdentityResolver
from sealcodes.signing.keys import InMemoryKeyRegistry, generate_private_key, record_for
from sealcodes.signing.service import SigningService
from sealcodes.signing.signer import Ed25519Signer, StaticKeyProvider

KEY_ID = "test-key-2024"
KEY_CREATED = "2024-01-01T00:00:00.000Z"
TOKEN = "token-a"
IDENTITY = Identity(provider="google", identifier="a@b.com")


@pytest.fixture
def private_key():
    return generate_private_key()


@pytest.fixture
def registry(private_key):
    return InMemoryKeyRegistry([record_for(KEY_ID, private_key, created_at=KEY_CREATED)])


@pytest.fixture
def resolver():
    return StaticIdentityResolver({TOKEN: IDENTITY})


@pytest.fixture
def key_provider(private_key):
    return StaticKeyProvider(KEY_ID, Ed25519Signer(private_key))


@pytest.fixture
def signing_service(resolver, key_provider, registry):
    return SigningService(resolver=resolver, keys=key_provider, registry=registry)


@pytest.fixture
def client(registry, resolver, key_provider):
    return TestClient(create_app(registry=registry, resolver=resolver, keys=key_provider))


@pytest.fixture
def make_package():
    def _make(identifier="a@b.com", provider="google", user_url=None, fill="#FFFFFF"):
        return build_package(
            DocumentHashes(cryptographic="ab" * 32, p_hash="f0f0f0f0f0f0f0f0", d_hash="0f0f0f0f0f0f0f0f"),
            Identity(provider=provider, identifier=identifier),
            ExclusionZone(x=0, y=0, width=100, height=100, fill_color=fill),
            user_url=user_url,
        )
    return _make
