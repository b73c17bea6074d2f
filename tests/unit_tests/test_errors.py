import json

import pytest

from files_manager.errors import (
    Forbidden,
    InternalError,
    NotFound,
    Unauthorized,
    ValidationError,
    handle_files_manager_errors,
)


@pytest.mark.parametrize("error, status_code, message", [
    (ValidationError("Missing name"), 400, "Missing name"),
    (Unauthorized(), 401, "Unauthorized"),
    (Forbidden(), 403, "Forbidden"),
    (NotFound(), 404, "Not found"),
    (InternalError(), 500, "Internal Server Error"),
])
async def test_errors_render_as_error_body(error, status_code, message):
    class FakeRequest:
        method = "GET"

        class url:
            path = "/files"

    response = await handle_files_manager_errors(FakeRequest(), error)

    assert response.status_code == status_code
    assert json.loads(response.body) == {"error": message}
