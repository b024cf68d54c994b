import pytest
import pytest_asyncio
from fakes import (
    FakeCompletionEngine,
    FakeKnowledgeService,
    FakeScaffoldRunner,
    FakeTextGenerator,
    FakeTitleDispatcher,
)

from artifact_chat.agent.client import ChatStreamService
from artifact_chat.data.sqlite_store import SQLiteStore
from artifact_chat.services.artifacts import ArtifactGenerator

TEST_MODEL = "test-model"


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "test.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def chat(sqlite_store):
    return await sqlite_store.create_chat(model=TEST_MODEL)


@pytest.fixture
def title_dispatcher():
    return FakeTitleDispatcher()


@pytest.fixture
def make_service(sqlite_store, title_dispatcher):
    """Build a ChatStreamService around a scripted engine; returns (service, engine)."""

    def _make(
        script=None,
        generator=None,
        knowledge=None,
        scaffold=None,
        web_search=None,
    ):
        engine = FakeCompletionEngine(script)
        service = ChatStreamService(
            store=sqlite_store,
            engine=engine,
            artifact_generator=ArtifactGenerator(
                generator or FakeTextGenerator('<svg viewBox="0 0 10 10"></svg>')
            ),
            knowledge=knowledge or FakeKnowledgeService(),
            scaffold_runner=scaffold or FakeScaffoldRunner(),
            title_dispatcher=title_dispatcher,
            web_search=web_search,
        )
        return service, engine

    return _make
