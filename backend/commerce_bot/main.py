import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from commerce_bot.chatbot.sessions import SessionSweeper
from commerce_bot.core.config import settings
from commerce_bot.core.errors import ChatbotError
from commerce_bot.database.base import Base
from commerce_bot.database.session import SessionLocal, engine
from commerce_bot.models import cart_item, chat_message, chat_session, search_history  # noqa: F401
from commerce_bot.routers.api import chat
from commerce_bot.routers.api.webhooks import whatsapp

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        Base.metadata.create_all(bind=engine)
        logger.info("Chatbot tables ready")

    app.state.sweeper = SessionSweeper(SessionLocal)
    app.state.sweeper.start()
    logger.info("%s assistant for %s starting up", settings.bot_name, settings.store_name)
    yield

    app.state.sweeper.stop()
    logger.info("Shutting down")


app = FastAPI(title=f"{settings.store_name} WhatsApp assistant", lifespan=lifespan)

app.include_router(chat.router)
app.include_router(whatsapp.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.exception_handler(ChatbotError)
async def chatbot_exception_handler(request: Request, exc: ChatbotError):
    logger.error("Unhandled %s on %s [%s]: %s", type(exc).__name__, request.url.path, exc.error_id, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Error interno", "error_id": exc.error_id},
    )
