import base64
import json

import pytest
from hypothesis import given, strategies as st

from sealcodes.attestation.builder import addendum_from_envelope, combine, compact as builder_compact, finalize
from sealcodes.attestation.canonical import CANONICAL_ORDER
from sealcodes.attestation.compact import (
    FIELD_MAP,
    compact,
    decode_payload,
    encode_payload,
    expand,
    parse_compact,
)
from sealcodes.attestation.model import (
    DocumentHashes,
    ExclusionZone,
    FullAttestationPackage,
    Identity,
    ServiceInfo,
    SignatureEnvelope,
)
from sealcodes.errors import MalformedAttestation

hex_color = st.text(alphabet="0123456789abcdefABCDEF", min_size=6, max_size=6)


@st.composite
def full_packages(draw):
    return FullAttestationPackage(
        hashes=DocumentHashes(
            cryptographic=draw(st.text(max_size=64)),
            p_hash=draw(st.text(max_size=16)),
            d_hash=draw(st.text(max_size=16)),
        ),
        identity=Identity(provider=draw(st.text(max_size=12)), identifier=draw(st.text(max_size=40))),
        exclusion_zone=ExclusionZone(
            x=draw(st.integers(min_value=0, max_value=10_000)),
            y=draw(st.integers(min_value=0, max_value=10_000)),
            width=draw(st.integers(min_value=1, max_value=5_000)),
            height=draw(st.integers(min_value=1, max_value=5_000)),
            fill_color=draw(hex_color),
        ),
        user_url=draw(st.one_of(st.none(), st.just(""), st.text(max_size=40))),
        timestamp=draw(st.text(max_size=30)),
        service_info=ServiceInfo(public_key_id=draw(st.text(min_size=1, max_size=20))),
    )


@given(full_packages(), st.text(min_size=1, max_size=88))
def test_expand_inverts_compact(pkg, sig):
    back, back_sig = expand(compact(pkg, sig))
    assert back == pkg
    assert back_sig == sig


@given(full_packages())
def test_payload_json_and_cbor_roundtrip(pkg):
    cad = compact(pkg, "c2ln", service_name="seal.codes")
    for fmt in ("json", "cbor"):
        assert decode_payload(encode_payload(cad, fmt)) == cad


def _leaf_paths(order, prefix=()):
    for name, nested, _ in order:
        if nested is None:
            yield prefix + (name,)
        else:
            yield from _leaf_paths(nested, prefix + (name,))


def test_field_map_covers_every_canonical_field():
    canonical = set(_leaf_paths(CANONICAL_ORDER))
    mapped = [f_path for _, f_path, _, _, _ in FIELD_MAP]
    assert len(mapped) == len(set(mapped))
    assert set(mapped) == canonical
    compact_paths = [c_path for c_path, _, _, _, _ in FIELD_MAP]
    assert len(compact_paths) == len(set(compact_paths))


def _pkg(make_package, url=None):
    u = make_package(user_url=url)
    return FullAttestationPackage(
        hashes=u.hashes, identity=u.identity, exclusion_zone=u.exclusion_zone, user_url=u.user_url,
        timestamp="2024-05-01T12:00:00.000Z", service_info=ServiceInfo(public_key_id="k1"),
    )


def test_compact_wire_shape(make_package):
    wire = compact(_pkg(make_package), "c2ln").wire()
    assert wire == {
        "v": 1,
        "h": {"c": "ab" * 32, "p": {"p": "f0f0f0f0f0f0f0f0", "d": "0f0f0f0f0f0f0f0f"}},
        "i": {"p": "google", "id": "a@b.com"},
        "e": {"x": 0, "y": 0, "w": 100, "h": 100, "f": "FFFFFF"},
        "t": "2024-05-01T12:00:00.000Z",
        "s": {"k": "k1"},
        "sig": "c2ln",
    }
    # no whitespace in the embedded payload
    assert " " not in encode_payload(compact(_pkg(make_package), "c2ln"))


def test_payload_without_version_reads_as_v1(make_package):
    wire = compact(_pkg(make_package), "c2ln").wire()
    wire.pop("v")
    wire["s"]["n"] = "seal.codes"
    pkg, sig = expand(wire)
    assert pkg == _pkg(make_package)
    assert pkg.exclusion_zone.fill_color == "#FFFFFF"


def test_unknown_version_is_malformed(make_package):
    wire = compact(_pkg(make_package), "c2ln").wire()
    wire["v"] = 99
    with pytest.raises(MalformedAttestation):
        parse_compact(wire)


def test_missing_field_is_malformed(make_package):
    wire = compact(_pkg(make_package), "c2ln").wire()
    del wire["e"]["w"]
    with pytest.raises(MalformedAttestation):
        expand(wire)


def test_undecodable_payload():
    with pytest.raises(MalformedAttestation):
        decode_payload("!!!not-base64!!!")


def test_builder_combine_and_compact(make_package):
    unsigned = make_package(user_url="")
    env = SignatureEnvelope(
        timestamp="2024-05-01T12:00:00.000Z",
        signature=base64.b64encode(b"s" * 64).decode(),
        public_key=base64.b64encode(b"p" * 32).decode(),
        public_key_id="k1",
    )
    full = combine(unsigned, addendum_from_envelope(env), env)
    assert full.unsigned() == unsigned
    cad = builder_compact(full, env)
    assert cad.u == ""
    assert cad.sig == env.signature
    full2, cad2 = finalize(unsigned, env, service_name="seal.codes")
    assert full2 == full
    assert cad2.s.n == "seal.codes"
    assert json.loads(encode_payload(cad2))["s"] == {"k": "k1", "n": "seal.codes"}


def test_combine_rejects_mismatched_envelope(make_package):
    unsigned = make_package()
    env = SignatureEnvelope(timestamp="2024-05-01T12:00:00.000Z", signature="c2ln", public_key="", public_key_id="k1")
    other = env.model_copy(update={"public_key_id": "k2"})
    with pytest.raises(ValueError):
        combine(unsigned, addendum_from_envelope(env), other)


def test_unsigned_package_has_no_server_fields(make_package):
    body = make_package().wire()
    body["timestamp"] = "1999-01-01T00:00:00.000Z"
    with pytest.raises(ValueError):
        type(make_package()).model_validate(body)
