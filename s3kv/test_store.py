import pytest

from s3kv.storage import PutOptions
from s3kv.storage.memory import InMemoryBackend
from s3kv.store import KeyValueStore


@pytest.fixture
def fs() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(fs: InMemoryBackend) -> KeyValueStore:
    return KeyValueStore("test-bucket", fs)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
async def test_set_then_get_json_text(store: KeyValueStore) -> None:
    await store.set_item("user", '{"id":3923,"name":"nezort11"}')
    assert await store.get_item("user") == '{"id":3923,"name":"nezort11"}'


@pytest.mark.anyio
async def test_overwrite_keeps_last_value(store: KeyValueStore) -> None:
    await store.set_item("greeting", "hello")
    await store.set_item("greeting", "привет")
    assert await store.get_item("greeting") == "привет"


@pytest.mark.anyio
async def test_get_missing_key_returns_none(store: KeyValueStore) -> None:
    assert await store.get_item("never-written") is None
    assert await store.get_item("never-written", encoding=None) is None


@pytest.mark.anyio
async def test_raw_bytes_come_back_exactly(store: KeyValueStore) -> None:
    value = b"\xff\xfe\x00\x80binary"
    await store.set_item("blob", value)
    assert await store.get_item("blob", encoding=None) == value
    with pytest.raises(UnicodeDecodeError):
        await store.get_item("blob")


@pytest.mark.anyio
async def test_other_encodings(store: KeyValueStore) -> None:
    await store.set_item("latin", "café".encode("latin-1"))
    assert await store.get_item("latin", encoding="latin-1") == "café"


@pytest.mark.anyio
async def test_text_defaults_to_plain_content_type(store: KeyValueStore, fs: InMemoryBackend) -> None:
    await store.set_item("text", "hi")
    await store.set_item("bytes", b"hi")
    assert fs.storage["test-bucket"]["text"].headers == {"Content-Type": "text/plain"}
    assert fs.storage["test-bucket"]["bytes"].headers == {}


@pytest.mark.anyio
async def test_options_override_content_type(store: KeyValueStore, fs: InMemoryBackend) -> None:
    options = PutOptions(content_type="application/json", metadata={"owner": "me"})
    await store.set_item("user", '{"id":1}', options)
    assert fs.storage["test-bucket"]["user"].headers == {
        "Content-Type": "application/json",
        "x-amz-meta-owner": "me",
    }
    # the caller's options object is left alone
    assert options.content_type == "application/json"


@pytest.mark.anyio
async def test_remove_is_idempotent(store: KeyValueStore) -> None:
    await store.set_item("key", "value")
    await store.remove_item("key")
    await store.remove_item("key")
    assert await store.get_item("key") is None


@pytest.mark.anyio
async def test_empty_key_rejected(store: KeyValueStore) -> None:
    with pytest.raises(ValueError):
        await store.set_item("", "value")
    with pytest.raises(ValueError):
        await store.get_item("")


@pytest.mark.anyio
@pytest.mark.parametrize("page_size", [1, 2, 7])
async def test_list_yields_every_key_once(fs: InMemoryBackend, page_size: int) -> None:
    fs.page_size = page_size
    store = KeyValueStore("test-bucket", fs)
    expected = {f"key-{i}" for i in range(7)}
    for key in expected:
        await store.set_item(key, key)

    keys = [key async for key in store.list()]

    assert len(keys) == len(expected)
    assert set(keys) == expected


@pytest.mark.anyio
async def test_list_restarts_on_each_call(fs: InMemoryBackend) -> None:
    fs.page_size = 2
    store = KeyValueStore("test-bucket", fs)
    for key in "abcde":
        await store.set_item(key, key)

    async for _ in store.list():
        break

    assert [key async for key in store.list()] == list("abcde")


@pytest.mark.anyio
async def test_list_only_sees_own_bucket(fs: InMemoryBackend) -> None:
    await KeyValueStore("other", fs).set_item("elsewhere", "x")
    store = KeyValueStore("test-bucket", fs)
    await store.set_item("here", "x")
    assert [key async for key in store.list()] == ["here"]


@pytest.mark.anyio
async def test_clear_then_list_is_empty(fs: InMemoryBackend) -> None:
    fs.page_size = 3
    store = KeyValueStore("test-bucket", fs)
    for i in range(10):
        await store.set_item(f"key-{i}", "v")

    assert await store.clear() == 10
    assert [key async for key in store.list()] == []
    assert await store.clear() == 0


def test_item_link_defaults_to_one_hour_get(store: KeyValueStore) -> None:
    assert store.get_item_link("a") == "memory://test-bucket/a?method=GET&expires=3600"
    assert (
        store.get_item_link("a", "DELETE", expires_in=60)
        == "memory://test-bucket/a?method=DELETE&expires=60"
    )


def test_item_link_rejects_unknown_verb(store: KeyValueStore) -> None:
    with pytest.raises(ValueError):
        store.get_item_link("a", "PATCH")  # type: ignore[arg-type]


def test_public_link_from_endpoint(fs: InMemoryBackend) -> None:
    store = KeyValueStore("ytdl-service", fs, "https://storage.yandexcloud.net")
    assert (
        store.get_item_public_link("2KX6ESUP4cy-q7D8bouYL")
        == "https://storage.yandexcloud.net/ytdl-service/2KX6ESUP4cy-q7D8bouYL"
    )


def test_public_link_keeps_port_and_quotes_key(fs: InMemoryBackend) -> None:
    store = KeyValueStore("media", fs, "http://localhost:9000")
    assert store.get_item_public_link("path/to/my file.txt") == "http://localhost:9000/media/path/to/my%20file.txt"


def test_public_link_without_endpoint(store: KeyValueStore) -> None:
    assert store.get_item_public_link("anything") is None
