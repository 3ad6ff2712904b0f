from fastapi import HTTPException, Request, status

from coin_proxy.services.fetch_service import FetchService


def get_fetch_service(request: Request) -> FetchService:
    """Return the fetch service created by the application lifespan."""
    service: FetchService | None = getattr(request.app.state, "fetch_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Fetch service not initialized",
        )
    return service
