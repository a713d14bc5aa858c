import os
import pytest


# List of environment variables that may be modified by tests
_ENV_VARS_TO_ISOLATE = [
    "VERSION_CHANNEL_PRECEDENCE",
    "VERSION_PATH_POSITION",
    "VERSION_HEADER_NAME",
    "VERSION_QUERY_PARAM",
    "VERSION_MEDIA_TYPE_PATTERN",
    "VERSION_TOKEN_PATTERN",
    "VERSION_MANDATORY",
    "VERSION_DEFAULT",
    "VERSION_MAX_ACTIVE",
    "VERSIONS_FILE",
    "HANDLER_TIMEOUT_SECONDS",
    "API_PREFIX",
    "ADMIN_PREFIX",
]


@pytest.fixture(autouse=True)
def env_isolation():
    """Isolate environment variables and the settings cache between tests."""
    from src.core.config import reset_settings

    backup = {k: os.environ.get(k) for k in _ENV_VARS_TO_ISOLATE}
    reset_settings()
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
        reset_settings()


@pytest.fixture
def registry():
    """Registry with versions 1 and 2 active, default 1."""
    from src.core.versioning import LifecycleState, VersionDescriptor, VersionRegistry, VersionToken

    reg = VersionRegistry(default_version="1")
    reg.register(VersionDescriptor(token=VersionToken("1"), state=LifecycleState.ACTIVE))
    reg.register(VersionDescriptor(token=VersionToken("2"), state=LifecycleState.ACTIVE))
    return reg


@pytest.fixture
def dispatch():
    """Dispatch table with a users handler for versions 1 and 2."""
    from src.core.versioning import HandlerDispatchTable

    table = HandlerDispatchTable()
    for version in ("1", "2"):
        table.register(
            version,
            "users",
            lambda request, _v=version: {"handled_by": _v, "version": str(request.resolved_version)},
        )
    return table
