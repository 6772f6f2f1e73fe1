import pytest

from tls_trust import TrustStore, TrustStoreError, load_trust_store
from tls_trust.models import CertificateInfo

from conftest import make_ca


def test_find_issuers_by_subject(pki) -> None:
    store = pki.trust_store
    intermediate = CertificateInfo.from_x509(pki.intermediate.cert)
    issuers = store.find_issuers(intermediate)
    assert [i.der for i in issuers] == [CertificateInfo.from_x509(pki.root.cert).der]


def test_contains_exact_certificate_only(pki) -> None:
    store = pki.trust_store
    assert store.contains(CertificateInfo.from_x509(pki.root.cert))
    assert not store.contains(CertificateInfo.from_x509(pki.intermediate.cert))


def test_duplicates_are_collapsed(pki) -> None:
    store = TrustStore([pki.root.cert, pki.root.cert])
    assert len(store) == 1


def test_empty_store_is_rejected() -> None:
    with pytest.raises(TrustStoreError):
        TrustStore([])


def test_load_from_bundle_file(tmp_path, pki) -> None:
    other = make_ca("Other Root CA")
    bundle = tmp_path / "roots.pem"
    bundle.write_bytes(pki.root.pem + other.pem)
    store = load_trust_store(bundle)
    assert len(store) == 2


def test_missing_bundle_file(tmp_path) -> None:
    with pytest.raises(TrustStoreError):
        TrustStore.from_files([tmp_path / "missing.pem"])


def test_unparseable_bundle(tmp_path) -> None:
    bundle = tmp_path / "broken.pem"
    bundle.write_bytes(b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n")
    with pytest.raises(TrustStoreError):
        TrustStore.from_files([bundle])


def test_default_store_uses_certifi() -> None:
    store = TrustStore.default()
    assert len(store) > 10
