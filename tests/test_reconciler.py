import pytest

from artifact_chat.agent.reconciler import PersistenceReconciler


@pytest.fixture
def reconciler(sqlite_store, title_dispatcher):
    return PersistenceReconciler(sqlite_store, title_dispatcher)


@pytest.mark.asyncio
async def test_finalize_keeps_text(reconciler, sqlite_store, chat, title_dispatcher):
    await sqlite_store.add_message(chat["id"], "user", "Hi")
    placeholder = await reconciler.create_placeholder(chat["id"])
    assert placeholder["parts"]["text"] == ""

    kept = await reconciler.finalize(chat["id"], placeholder["id"], "Hello", [])

    assert kept
    assert (await sqlite_store.get_message(placeholder["id"]))["parts"]["text"] == "Hello"
    assert title_dispatcher.dispatched == [chat["id"]]


@pytest.mark.asyncio
async def test_finalize_keeps_artifact_only_reply(reconciler, sqlite_store, chat):
    placeholder = await reconciler.create_placeholder(chat["id"])

    assert await reconciler.finalize(chat["id"], placeholder["id"], "", ["some-artifact"])
    assert await sqlite_store.get_message(placeholder["id"]) is not None


@pytest.mark.asyncio
async def test_finalize_discards_empty_turn(reconciler, sqlite_store, chat, title_dispatcher):
    placeholder = await reconciler.create_placeholder(chat["id"])

    assert not await reconciler.finalize(chat["id"], placeholder["id"], "", [])
    assert await sqlite_store.get_message(placeholder["id"]) is None
    assert title_dispatcher.dispatched == []


@pytest.mark.asyncio
async def test_cleanup_without_text_rolls_back(reconciler, sqlite_store, chat):
    placeholder = await reconciler.create_placeholder(chat["id"])
    artifact = await sqlite_store.create_artifact(
        message_id=placeholder["id"], identifier="i", type="svg", title="t", content="<svg/>"
    )

    await reconciler.cleanup(placeholder["id"], "")

    assert await sqlite_store.get_message(placeholder["id"]) is None
    assert await sqlite_store.get_artifact(artifact["id"]) is None


@pytest.mark.asyncio
async def test_cleanup_with_text_keeps_partial(reconciler, sqlite_store, chat):
    placeholder = await reconciler.create_placeholder(chat["id"])

    await reconciler.cleanup(placeholder["id"], "Partial")

    assert (await sqlite_store.get_message(placeholder["id"]))["parts"]["text"] == "Partial"


@pytest.mark.asyncio
async def test_cleanup_without_placeholder_is_noop(reconciler):
    await reconciler.cleanup(None, "")
