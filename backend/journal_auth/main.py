from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.middleware.trustedhost import TrustedHostMiddleware

from journal_auth.api.errors import install_error_handlers
from journal_auth.api.router import router
from journal_auth.core.config import settings
from journal_auth.core.logging import configure_logging

# Auth responses carry tokens; nothing may be cached or framed.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
    "Content-Security-Policy": "frame-ancestors 'none'; base-uri 'self'",
}
HSTS = "max-age=31536000; includeSubDomains"


def _allowed_hosts() -> list[str]:
    hosts = [h.strip() for h in settings.ALLOWED_HOSTS.split(",") if h.strip()]
    return hosts or ["*"]


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)
    app = FastAPI(title="Journal Auth", version="0.1.0")
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=_allowed_hosts())

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response: Response = await call_next(request)
        if settings.SECURITY_HEADERS_ENABLED:
            response.headers.update(SECURITY_HEADERS)
            if settings.ENV != "dev":
                response.headers["Strict-Transport-Security"] = HSTS
        return response

    install_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
