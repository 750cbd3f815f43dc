import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from . import config
from .errors import ClarityError
from .events import EventBus
from .models import init_db
from .routers import message_router
from .services import MessageService, ParticipantService, RealtimeService
from . import websocket

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = FastAPI(
        title="Clarity",
        description="Doubts and clarities channel between gym admins and members.\n\n"
                    "Tenant-scoped threaded messages with read tracking "
                    "and real-time delivery over websockets.",
        version="1.0.0"
    )

    # One set of collaborators per app instance
    events = EventBus()
    presence = websocket.PresenceRegistry()
    participants = ParticipantService()
    RealtimeService(presence).subscribe(events)
    app.state.events = events
    app.state.presence = presence
    app.state.participants = participants
    app.state.message_service = MessageService(participants, events)

    @app.exception_handler(ClarityError)
    async def clarity_exception_handler(request: Request, exc: ClarityError):
        return JSONResponse(status_code=exc.status_code, content={"msg": exc.msg})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"msg": exc.detail},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        error_messages = []
        for error in errors:
            field = " -> ".join(str(loc) for loc in error["loc"])
            message = error.get("msg", "Validation error")
            error_messages.append(f"{field}: {message}")

        detail = "; ".join(error_messages) if error_messages else "Invalid request data"

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"msg": detail}
        )

    @app.on_event("startup")
    async def startup_db_client():
        await init_db()

    app.include_router(message_router.router, prefix="/api/messages", tags=["Doubts"])
    app.include_router(websocket.router, prefix="/websocket", tags=["Connect real-time"])

    @app.get("/")
    def read_root():
        return {"msg": "Server is running"}

    return app


app = create_app()
