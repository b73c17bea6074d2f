from tests.fixtures.app_fixtures import (  # noqa: F401
    adapter,
    auth_service,
    blob_store,
    client,
    file_service,
    job_tracker,
    queue,
    session_store,
    settings,
)
from tests.fixtures.aws_fixtures import mocked_aws  # noqa: F401
