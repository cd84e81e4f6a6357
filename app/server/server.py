from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.router import api_router
from infrastructure.configuration import settings
from infrastructure.logging import bind_request_context, get_module_logger
from server.lifespan import lifespan

logger = get_module_logger()


handler = FastAPI(title="Marketplace Notifications", lifespan=lifespan)


allow_origins = (
    ["*"]
    if settings.is_production
    else [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]
)
handler.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@handler.middleware("http")
async def logging_middleware(request: Request, call_next):
    with bind_request_context(
        correlation_id=request.headers.get("X-Correlation-ID"),
        request_path=request.url.path,
        request_method=request.method,
    ):
        return await call_next(request)


handler.include_router(api_router)
