import inspect

import pytest

from routers.auth import router


@pytest.mark.parametrize("path", [
    "/api/auth/login",
    "/api/auth/refresh",
    "/api/auth/logout",
    "/api/auth/logout-all",
])
def test_blocking_handlers_run_in_threadpool(path):
    """bcrypt and database work must not run on the event loop."""
    route = next(route for route in router.routes if route.path == path)

    assert not inspect.iscoroutinefunction(route.endpoint)
