import base64
import datetime

import pytest

from sealcodes import config
from sealcodes.attestation.builder import addendum_from_envelope, combine
from sealcodes.attestation.canonical import canonicalize
from sealcodes.errors import IdentityMismatch, ServerConfigurationError, Unauthorized
from sealcodes.signing.keys import (
    InMemoryKeyRegistry,
    SigningKey,
    generate_private_key,
    load_public_key,
    private_key_pem,
    record_for,
)
from sealcodes.signing.service import SigningService
from sealcodes.signing.signer import (
    Ed25519Signer,
    EnvKeyProvider,
    MockSigner,
    StaticKeyProvider,
    select_signer,
)

from conftest import KEY_ID, TOKEN

AUTH = f"Bearer {TOKEN}"


class RecordingProvider:
    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def active(self):
        self.calls += 1
        return self.inner.active()


def test_sign_produces_verifiable_envelope(signing_service, private_key, make_package):
    pkg = make_package(user_url="https://example.org/me")
    env = signing_service.sign(pkg, AUTH)
    assert env.public_key_id == KEY_ID
    assert env.timestamp.endswith("Z")
    full = combine(pkg, addendum_from_envelope(env), env)
    private_key.public_key().verify(base64.b64decode(env.signature), canonicalize(full))
    assert base64.b64decode(env.public_key) == Ed25519Signer(private_key).public_key_raw()


def test_timestamp_is_stamped_by_server(resolver, key_provider, registry, make_package):
    fixed = datetime.datetime(2024, 6, 1, 8, 30, 0, 123000, tzinfo=datetime.timezone.utc)
    svc = SigningService(resolver, key_provider, registry, clock=lambda: fixed)
    assert svc.sign(make_package(), AUTH).timestamp == "2024-06-01T08:30:00.123Z"


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Bearer unknown-token"])
def test_unauthorized(resolver, key_provider, registry, make_package, header):
    provider = RecordingProvider(key_provider)
    svc = SigningService(resolver, provider, registry)
    with pytest.raises(Unauthorized):
        svc.sign(make_package(), header)
    assert provider.calls == 0


def test_identifier_mismatch_never_reaches_signer(resolver, key_provider, registry, make_package):
    provider = RecordingProvider(key_provider)
    svc = SigningService(resolver, provider, registry)
    with pytest.raises(IdentityMismatch) as ei:
        svc.sign(make_package(identifier="c@d.com"), AUTH)
    assert ei.value.message.startswith("Identity mismatch")
    assert provider.calls == 0


def test_provider_mismatch(resolver, key_provider, registry, make_package):
    provider = RecordingProvider(key_provider)
    svc = SigningService(resolver, provider, registry)
    with pytest.raises(IdentityMismatch) as ei:
        svc.sign(make_package(provider="github"), AUTH)
    assert ei.value.message.startswith("Provider mismatch")
    assert provider.calls == 0


def test_active_key_missing_from_registry(resolver, key_provider, make_package):
    svc = SigningService(resolver, key_provider, InMemoryKeyRegistry())
    with pytest.raises(ServerConfigurationError):
        svc.sign(make_package(), AUTH)


def test_registry_key_does_not_match_signer(resolver, key_provider, make_package):
    other = InMemoryKeyRegistry([record_for(KEY_ID, generate_private_key(), created_at="2024-01-01T00:00:00Z")])
    svc = SigningService(resolver, key_provider, other)
    with pytest.raises(ServerConfigurationError):
        svc.sign(make_package(), AUTH)


def test_retired_key_refuses_to_sign(resolver, key_provider, registry, make_package):
    registry.retire(KEY_ID, "2024-02-01T00:00:00.000Z")
    svc = SigningService(resolver, key_provider, registry)
    with pytest.raises(ServerConfigurationError):
        svc.sign(make_package(), AUTH)


def test_key_not_yet_valid(resolver, key_provider, registry, make_package):
    early = datetime.datetime(2023, 12, 31, tzinfo=datetime.timezone.utc)
    svc = SigningService(resolver, key_provider, registry, clock=lambda: early)
    with pytest.raises(ServerConfigurationError):
        svc.sign(make_package(), AUTH)


def test_unreadable_registry_window(resolver, key_provider, private_key, make_package):
    reg = InMemoryKeyRegistry([record_for(KEY_ID, private_key, created_at="yesterday")])
    svc = SigningService(resolver, key_provider, reg)
    with pytest.raises(ServerConfigurationError):
        svc.sign(make_package(), AUTH)


def test_algorithm_mismatch(resolver, make_package):
    reg = InMemoryKeyRegistry([SigningKey(key_id="m", public_key="", created_at="2024-01-01T00:00:00Z")])
    svc = SigningService(resolver, StaticKeyProvider("m", MockSigner()), reg)
    with pytest.raises(ServerConfigurationError):
        svc.sign(make_package(), AUTH)


def test_mock_signer_with_mock_record(resolver, make_package):
    reg = InMemoryKeyRegistry([SigningKey(key_id="m", public_key="", algorithm="mock",
                                          created_at="2024-01-01T00:00:00Z")])
    env = SigningService(resolver, StaticKeyProvider("m", MockSigner()), reg).sign(make_package(), AUTH)
    assert base64.b64decode(env.public_key) == b"\x00" * 32
    assert len(base64.b64decode(env.signature)) == 32


def test_select_signer_refuses_mock_in_production():
    with pytest.raises(ServerConfigurationError):
        select_signer("mock", production=True)
    assert isinstance(select_signer("mock", production=False).active()[1], MockSigner)
    with pytest.raises(ServerConfigurationError):
        select_signer("rsa", production=False)


def test_env_key_provider_reads_pem(private_key):
    key_id, signer = EnvKeyProvider(key_id="k-env", pem=private_key_pem(private_key)).active()
    assert key_id == "k-env"
    assert signer.public_key_raw() == Ed25519Signer(private_key).public_key_raw()


def test_env_key_provider_reads_path(tmp_path, private_key):
    path = tmp_path / "sk.pem"
    path.write_text(private_key_pem(private_key))
    key_id, signer = EnvKeyProvider(key_id="k-file", pem="", pem_path=str(path)).active()
    msg = b"hello"
    load_public_key(record_for("x", private_key).public_key).verify(signer.sign(msg), msg)


def test_env_key_provider_misconfigured(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "SIGNING_KEY_ID", "")
    with pytest.raises(ServerConfigurationError):
        EnvKeyProvider().active()
    with pytest.raises(ServerConfigurationError):
        EnvKeyProvider(key_id="k", pem="", pem_path=str(tmp_path / "absent.pem")).active()
    with pytest.raises(ServerConfigurationError):
        EnvKeyProvider(key_id="k", pem="not a pem").active()
