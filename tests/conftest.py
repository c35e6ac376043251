import pytest
from click.testing import CliRunner


@pytest.fixture
def vault_path(tmp_path):
    """Vault location inside a config directory that does not exist yet."""
    return tmp_path / "config" / "portunus.json"


@pytest.fixture
def runner():
    return CliRunner()
