import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .agent.client import ChatStreamService
from .agent.engine import ClaudeCompletionEngine, TextGenerator
from .agent.titles import TitleDispatcher, TitleGenerator
from .api.routes import router
from .config import DATA_DIR, PORT, ROOT_PATH, SQLITE_PATH
from .data.sqlite_store import SQLiteStore
from .services.artifacts import ArtifactGenerator
from .services.knowledge import KnowledgeService
from .services.scaffold import ScaffoldRunner
from .services.web_search import WebSearchService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing SQLite store...")
    store = SQLiteStore(str(SQLITE_PATH))
    await store.initialize()

    logger.info("Initializing chat stream service...")
    text_generator = TextGenerator()
    title_dispatcher = TitleDispatcher(TitleGenerator(store, text_generator))
    web_search = WebSearchService()
    if not web_search.enabled:
        logger.info("TAVILY_API_KEY not set, web search disabled")

    chat_service = ChatStreamService(
        store=store,
        engine=ClaudeCompletionEngine(),
        artifact_generator=ArtifactGenerator(text_generator),
        knowledge=KnowledgeService(),
        scaffold_runner=ScaffoldRunner(),
        title_dispatcher=title_dispatcher,
        web_search=web_search,
    )

    app.state.store = store
    app.state.chat_service = chat_service

    logger.info("Startup complete — ready to serve")
    yield

    # Shutdown
    logger.info("Shutting down...")
    await title_dispatcher.close()
    await web_search.close()
    await store.close()


app = FastAPI(title="Artifact Chat", root_path=ROOT_PATH, lifespan=lifespan)
app.include_router(router)


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=PORT)
