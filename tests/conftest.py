import pytest

from ecsdeploy.config import DeployConfig
from fake_aws import fake_clients


@pytest.fixture
def clients():
    return fake_clients()


@pytest.fixture
def config():
    return DeployConfig(env_prefix="dev", create_infra=True)


@pytest.fixture
def sleeps():
    """Pass sleeps.append as the sleep function to record delays."""
    return []
