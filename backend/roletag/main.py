# backend/roletag/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roletag.config import get_settings
from roletag.errors import RoleTagError
from roletag.api.account import router as account_router
from roletag.api.roles import router as roles_router
from roletag.api.policies import router as policies_router
from roletag.api.users import router as users_router
from roletag.api.machines import router as machines_router
from roletag.api.resources import router as resources_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Role tags for account resources",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["role-tag", "Location"],
)


@app.exception_handler(RoleTagError)
async def role_tag_error_handler(request: Request, exc: RoleTagError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "detail": exc.message},
    )


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


# Include routers; the generic role-tag routes go last
app.include_router(account_router, prefix=settings.api_prefix)
app.include_router(roles_router, prefix=settings.api_prefix)
app.include_router(policies_router, prefix=settings.api_prefix)
app.include_router(users_router, prefix=settings.api_prefix)
app.include_router(machines_router, prefix=settings.api_prefix)
app.include_router(resources_router, prefix=settings.api_prefix)
