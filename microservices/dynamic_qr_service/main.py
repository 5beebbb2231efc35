"""
Dynamic QR Service Main Application

FastAPI application resolving dynamic QR scans to redirect targets.
Port: 8260
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from core.config import get_settings
from core.logger import setup_service_logger

from .factory import DynamicQRServiceFactory
from .models import (
    ABTestCompleteRequest,
    ABTestCreateRequest,
    ABTestUpdateRequest,
    ContentScheduleCreateRequest,
    ContentScheduleUpdateRequest,
    ContentVersionCreateRequest,
    ContentVersionUpdateRequest,
    HealthResponse,
    RedirectRuleCreateRequest,
    RedirectRuleToggleRequest,
    RedirectRuleUpdateRequest,
    ResolutionContext,
    ServiceResponse,
)

settings = get_settings()
logger = setup_service_logger(settings.service_name, settings.logging)

SERVICE_NAME = settings.service_name
SERVICE_PORT = settings.port
SERVICE_VERSION = settings.service_version

SESSION_COOKIE = "qr_session"

# Global factory instance
factory: Optional[DynamicQRServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    factory = DynamicQRServiceFactory(settings)
    await factory.initialize()

    yield

    # Cleanup
    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()
    factory = None


# Create FastAPI application
app = FastAPI(
    title="Dynamic QR Service",
    description="Resolves dynamic QR scans through A/B tests, redirect rules, schedules and active versions",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters use the service error envelope"""
    details = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    logger.info(f"Rejected request to {request.url.path}: {details}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Request validation failed",
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "details": details,
            },
        },
    )


# ====================
# Helpers
# ====================


def get_service():
    """Get dynamic QR service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.service


def build_context(request: Request) -> ResolutionContext:
    """Visitor context from request headers, cookies and client address"""
    headers = request.headers

    forwarded = headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip() or None
    else:
        ip_address = request.client.host if request.client else None

    return ResolutionContext(
        user_agent=headers.get("User-Agent"),
        ip_address=ip_address,
        referrer=headers.get("Referer"),
        session_id=headers.get("X-Session-ID") or request.cookies.get(SESSION_COOKIE),
        country=headers.get("X-Geo-Country"),
        region=headers.get("X-Geo-Region"),
        city=headers.get("X-Geo-City"),
    )


def error_response(result: ServiceResponse) -> JSONResponse:
    error = result.error
    return JSONResponse(
        status_code=error.status_code,
        content={
            "success": False,
            "message": result.message,
            "error": {
                "code": error.code,
                "message": error.message,
                "status_code": error.status_code,
            },
        },
    )


def respond(result: ServiceResponse, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Serialize a service envelope, mapping failures to their error status"""
    if not result.success:
        return error_response(result)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ====================
# Health Endpoints
# ====================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}
    analytics = {}

    if factory:
        try:
            repo_healthy = await factory.repository.health_check()
            dependencies["repository"] = "healthy" if repo_healthy else "unhealthy"
        except Exception as e:
            logger.warning(f"Repository health check failed: {e}")
            dependencies["repository"] = "unhealthy"

        if factory.event_bus:
            connected = getattr(factory.event_bus, "is_connected", True)
            dependencies["events"] = "healthy" if connected else "unhealthy"
        else:
            dependencies["events"] = "not_configured"
        if factory.analytics_recorder:
            analytics = factory.analytics_recorder.stats()

    return HealthResponse(
        status="healthy" if factory else "starting",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
        analytics=analytics,
    )


# ====================
# Resolution Endpoints
# ====================


@app.get("/r/{code_id}", tags=["Resolution"])
async def resolve_redirect(code_id: str, request: Request, service=Depends(get_service)):
    """Resolve a scan and redirect the visitor"""
    result = await service.resolve_redirect(code_id, build_context(request))
    if not result.success:
        return error_response(result)
    return RedirectResponse(url=result.data, status_code=status.HTTP_302_FOUND)


@app.get("/api/v1/dynamic-qr/{code_id}/resolve", tags=["Resolution"])
async def resolve_preview(code_id: str, request: Request, service=Depends(get_service)):
    """Resolve a scan without redirecting; data is the target URL"""
    return respond(await service.resolve_redirect(code_id, build_context(request)))


# ====================
# Content Version Endpoints
# ====================


@app.post(
    "/api/v1/dynamic-qr/{code_id}/versions",
    status_code=status.HTTP_201_CREATED,
    tags=["Content Versions"],
)
async def create_content_version(
    code_id: str,
    request: ContentVersionCreateRequest,
    service=Depends(get_service),
):
    """
    Create a content version

    Version numbers increase per code. Creating an active version
    deactivates the previous one.
    """
    result = await service.create_content_version(code_id, request)
    return respond(result, status.HTTP_201_CREATED)


@app.get("/api/v1/dynamic-qr/{code_id}/versions", tags=["Content Versions"])
async def list_content_versions(code_id: str, service=Depends(get_service)):
    """List content versions of a code"""
    return respond(await service.get_content_versions(code_id))


@app.get("/api/v1/dynamic-qr/{code_id}/versions/active", tags=["Content Versions"])
async def get_active_content_version(code_id: str, service=Depends(get_service)):
    """Get the active content version of a code"""
    return respond(await service.get_active_content_version(code_id))


@app.put("/api/v1/dynamic-qr/versions/{version_id}", tags=["Content Versions"])
async def update_content_version(
    version_id: str,
    request: ContentVersionUpdateRequest,
    service=Depends(get_service),
):
    """Update a content version"""
    return respond(await service.update_content_version(version_id, request))


@app.post("/api/v1/dynamic-qr/versions/{version_id}/activate", tags=["Content Versions"])
async def activate_content_version(version_id: str, service=Depends(get_service)):
    """Activate a content version"""
    return respond(await service.activate_content_version(version_id))


@app.post("/api/v1/dynamic-qr/versions/{version_id}/deactivate", tags=["Content Versions"])
async def deactivate_content_version(version_id: str, service=Depends(get_service)):
    """Deactivate a content version"""
    return respond(await service.deactivate_content_version(version_id))


@app.delete("/api/v1/dynamic-qr/versions/{version_id}", tags=["Content Versions"])
async def delete_content_version(version_id: str, service=Depends(get_service)):
    """
    Delete a content version

    Versions referenced by a running A/B test cannot be deleted.
    """
    return respond(await service.delete_content_version(version_id))


# ====================
# A/B Test Endpoints
# ====================


@app.post(
    "/api/v1/dynamic-qr/{code_id}/ab-tests",
    status_code=status.HTTP_201_CREATED,
    tags=["A/B Tests"],
)
async def create_ab_test(
    code_id: str,
    request: ABTestCreateRequest,
    service=Depends(get_service),
):
    """Create a draft A/B test"""
    result = await service.create_ab_test(code_id, request)
    return respond(result, status.HTTP_201_CREATED)


@app.get("/api/v1/dynamic-qr/{code_id}/ab-tests", tags=["A/B Tests"])
async def list_ab_tests(code_id: str, service=Depends(get_service)):
    """List A/B tests of a code"""
    return respond(await service.get_ab_tests(code_id))


@app.put("/api/v1/dynamic-qr/ab-tests/{test_id}", tags=["A/B Tests"])
async def update_ab_test(
    test_id: str,
    request: ABTestUpdateRequest,
    service=Depends(get_service),
):
    """
    Update an A/B test

    The traffic split of a running test cannot change.
    """
    return respond(await service.update_ab_test(test_id, request))


@app.post("/api/v1/dynamic-qr/ab-tests/{test_id}/start", tags=["A/B Tests"])
async def start_ab_test(test_id: str, service=Depends(get_service)):
    """Start a draft A/B test"""
    return respond(await service.start_ab_test(test_id))


@app.post("/api/v1/dynamic-qr/ab-tests/{test_id}/pause", tags=["A/B Tests"])
async def pause_ab_test(test_id: str, service=Depends(get_service)):
    """Pause an A/B test"""
    return respond(await service.pause_ab_test(test_id))


@app.post("/api/v1/dynamic-qr/ab-tests/{test_id}/resume", tags=["A/B Tests"])
async def resume_ab_test(test_id: str, service=Depends(get_service)):
    """Resume a paused A/B test"""
    return respond(await service.resume_ab_test(test_id))


@app.post("/api/v1/dynamic-qr/ab-tests/{test_id}/complete", tags=["A/B Tests"])
async def complete_ab_test(
    test_id: str,
    request: Optional[ABTestCompleteRequest] = None,
    service=Depends(get_service),
):
    """Complete an A/B test, optionally naming the winner"""
    winner_variant = request.winner_variant if request else None
    return respond(await service.complete_ab_test(test_id, winner_variant))


@app.delete("/api/v1/dynamic-qr/ab-tests/{test_id}", tags=["A/B Tests"])
async def delete_ab_test(test_id: str, service=Depends(get_service)):
    """Delete an A/B test that is not running"""
    return respond(await service.delete_ab_test(test_id))


# ====================
# Redirect Rule Endpoints
# ====================


@app.post(
    "/api/v1/dynamic-qr/{code_id}/redirect-rules",
    status_code=status.HTTP_201_CREATED,
    tags=["Redirect Rules"],
)
async def create_redirect_rule(
    code_id: str,
    request: RedirectRuleCreateRequest,
    service=Depends(get_service),
):
    """Create a redirect rule"""
    result = await service.create_redirect_rule(code_id, request)
    return respond(result, status.HTTP_201_CREATED)


@app.get("/api/v1/dynamic-qr/{code_id}/redirect-rules", tags=["Redirect Rules"])
async def list_redirect_rules(code_id: str, service=Depends(get_service)):
    """List redirect rules of a code"""
    return respond(await service.get_redirect_rules(code_id))


@app.put("/api/v1/dynamic-qr/redirect-rules/{rule_id}", tags=["Redirect Rules"])
async def update_redirect_rule(
    rule_id: str,
    request: RedirectRuleUpdateRequest,
    service=Depends(get_service),
):
    """Update a redirect rule"""
    return respond(await service.update_redirect_rule(rule_id, request))


@app.post("/api/v1/dynamic-qr/redirect-rules/{rule_id}/toggle", tags=["Redirect Rules"])
async def toggle_redirect_rule(
    rule_id: str,
    request: Optional[RedirectRuleToggleRequest] = None,
    service=Depends(get_service),
):
    """Enable or disable a redirect rule"""
    enabled = request.enabled if request else None
    return respond(await service.toggle_redirect_rule(rule_id, enabled))


@app.delete("/api/v1/dynamic-qr/redirect-rules/{rule_id}", tags=["Redirect Rules"])
async def delete_redirect_rule(rule_id: str, service=Depends(get_service)):
    """Delete a redirect rule"""
    return respond(await service.delete_redirect_rule(rule_id))


# ====================
# Content Schedule Endpoints
# ====================


@app.post(
    "/api/v1/dynamic-qr/{code_id}/schedules",
    status_code=status.HTTP_201_CREATED,
    tags=["Content Schedules"],
)
async def create_content_schedule(
    code_id: str,
    request: ContentScheduleCreateRequest,
    service=Depends(get_service),
):
    """Create a content schedule"""
    result = await service.create_content_schedule(code_id, request)
    return respond(result, status.HTTP_201_CREATED)


@app.get("/api/v1/dynamic-qr/{code_id}/schedules", tags=["Content Schedules"])
async def list_content_schedules(code_id: str, service=Depends(get_service)):
    """List content schedules of a code"""
    return respond(await service.get_content_schedules(code_id))


@app.put("/api/v1/dynamic-qr/schedules/{schedule_id}", tags=["Content Schedules"])
async def update_content_schedule(
    schedule_id: str,
    request: ContentScheduleUpdateRequest,
    service=Depends(get_service),
):
    """Update a content schedule"""
    return respond(await service.update_content_schedule(schedule_id, request))


@app.delete("/api/v1/dynamic-qr/schedules/{schedule_id}", tags=["Content Schedules"])
async def delete_content_schedule(schedule_id: str, service=Depends(get_service)):
    """Delete a content schedule"""
    return respond(await service.delete_content_schedule(schedule_id))


# ====================
# Statistics Endpoints
# ====================


@app.get("/api/v1/dynamic-qr/{code_id}/stats", tags=["Statistics"])
async def get_stats(code_id: str, service=Depends(get_service)):
    """Aggregate statistics of a code"""
    return respond(await service.get_dynamic_qr_stats(code_id))


@app.get("/api/v1/dynamic-qr/{code_id}/analytics", tags=["Statistics"])
async def get_analytics(
    code_id: str,
    limit: int = Query(100, description="Records per page (1-1000)"),
    offset: int = Query(0, description="Records to skip"),
    service=Depends(get_service),
):
    """Scan records of a code, newest first"""
    return respond(await service.get_dynamic_qr_analytics(code_id, limit=limit, offset=offset))


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.dynamic_qr_service.main:app",
        host=settings.host,
        port=SERVICE_PORT,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
