import pytest

from auth.models import Credentials
from tests.listener_helpers import find_free_port


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
def credentials(free_port) -> Credentials:
    return Credentials(
        client_id="abc",
        client_secret="xyz",
        redirect_uri=f"http://127.0.0.1:{free_port}/callback",
    )
