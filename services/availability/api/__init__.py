from services.availability.api.admin import router as admin_router  # noqa: F401
from services.availability.api.profiles import router as profiles_router  # noqa: F401
from services.availability.api.queries import router as queries_router  # noqa: F401
from services.availability.api.slots import router as slots_router  # noqa: F401

API_PREFIX = "/api/v1/availability"


def include_routers(app) -> None:
    """Mount every availability router under the service prefix."""
    app.include_router(profiles_router, prefix=f"{API_PREFIX}/profiles", tags=["profiles"])
    app.include_router(queries_router, prefix=API_PREFIX, tags=["queries"])
    app.include_router(slots_router, prefix=f"{API_PREFIX}/slots", tags=["slots"])
    app.include_router(admin_router, prefix=API_PREFIX, tags=["admin"])
