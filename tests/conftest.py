import pytest

import sensei.persistence as persistence

CREDENTIAL_VARS = (
    "KRAKEN_API_KEY",
    "KRAKEN_API_SECRET",
    "PK",
    "RECIPIENT",
    "INFURA_API_KEY",
    "SENSEI_STATUS_URL",
    "SENSEI_CONFIG",
    "SENSEI_EXCHANGE",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep real credentials, config files and the cached store out of tests."""
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    persistence._store_instance = None
    yield
    persistence._store_instance = None
