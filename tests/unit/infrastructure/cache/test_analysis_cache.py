import json

import pytest

from promptaudit.infrastructure.cache.analysis_cache import (
    METADATA_FILE_NAME,
    AnalysisCache,
    generate_cache_key,
)

MODEL = "llama3.2"
PROMPTS = ["fix the bug", "add tests"]


@pytest.fixture
def cache(tmp_path):
    return AnalysisCache(cache_dir=tmp_path, system_prompt_hash="sys-v1")


def _expire(cache, prompts, model):
    path = cache.l2_dir / f"{generate_cache_key(prompts, model)}.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    data["metadata"]["cachedAt"] = 0
    path.write_text(json.dumps(data), encoding="utf-8")


def test_cache_key_depends_on_model_and_prompts():
    key = generate_cache_key(PROMPTS, MODEL)

    assert key == generate_cache_key(list(PROMPTS), MODEL)
    assert key != generate_cache_key(PROMPTS, "other")
    assert key != generate_cache_key(PROMPTS[:1], MODEL)
    assert len(key) == 64


@pytest.mark.asyncio
async def test_set_then_get(cache, make_result):
    result = make_result()

    await cache.set(PROMPTS, MODEL, result)

    assert await cache.get(PROMPTS, MODEL) == result


@pytest.mark.asyncio
async def test_entries_survive_a_new_instance(tmp_path, make_result):
    await AnalysisCache(tmp_path, system_prompt_hash="sys-v1").set(PROMPTS, MODEL, make_result())

    reloaded = AnalysisCache(tmp_path, system_prompt_hash="sys-v1")

    assert await reloaded.get(PROMPTS, MODEL) == make_result()


@pytest.mark.asyncio
async def test_miss_for_unknown_batch(cache):
    assert await cache.get(PROMPTS, MODEL) is None


@pytest.mark.asyncio
async def test_expired_entry_is_a_miss(tmp_path, make_result):
    await AnalysisCache(tmp_path, system_prompt_hash="sys-v1").set(PROMPTS, MODEL, make_result())
    reloaded = AnalysisCache(tmp_path, system_prompt_hash="sys-v1")
    _expire(reloaded, PROMPTS, MODEL)

    assert await reloaded.get(PROMPTS, MODEL) is None


@pytest.mark.asyncio
async def test_prompt_count_mismatch_is_a_miss(tmp_path, make_result):
    await AnalysisCache(tmp_path, system_prompt_hash="sys-v1").set(PROMPTS, MODEL, make_result())
    reloaded = AnalysisCache(tmp_path, system_prompt_hash="sys-v1")
    path = reloaded.l2_dir / f"{generate_cache_key(PROMPTS, MODEL)}.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    data["metadata"]["promptCount"] = 5
    path.write_text(json.dumps(data), encoding="utf-8")

    assert await reloaded.get(PROMPTS, MODEL) is None


@pytest.mark.asyncio
async def test_corrupted_entry_is_a_miss(cache, make_result):
    await cache.set(PROMPTS, MODEL, make_result())
    cache.l1_cache.clear()
    (cache.l2_dir / f"{generate_cache_key(PROMPTS, MODEL)}.json").write_text("garbage", encoding="utf-8")

    assert await cache.get(PROMPTS, MODEL) is None


@pytest.mark.asyncio
async def test_system_prompt_change_clears_cache(tmp_path, make_result):
    old = AnalysisCache(tmp_path, system_prompt_hash="sys-v1")
    await old.set(PROMPTS, MODEL, make_result())

    new = AnalysisCache(tmp_path, system_prompt_hash="sys-v2")

    assert await new.get(PROMPTS, MODEL) is None
    assert [p.name for p in new.l2_dir.iterdir()] == [METADATA_FILE_NAME]
    metadata = json.loads((new.l2_dir / METADATA_FILE_NAME).read_text(encoding="utf-8"))
    assert metadata["systemPromptHash"] == "sys-v2"


@pytest.mark.asyncio
async def test_set_failure_is_logged_not_raised(tmp_path, make_result, caplog):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")
    cache = AnalysisCache(blocker, system_prompt_hash="sys-v1")

    await cache.set(PROMPTS, MODEL, make_result())

    assert "Failed to cache result" in caplog.text


@pytest.mark.asyncio
async def test_clear_removes_everything(cache, make_result):
    await cache.set(PROMPTS, MODEL, make_result())

    await cache.clear()

    assert not cache.l2_dir.exists()
    assert cache.l1_cache == {}


@pytest.mark.asyncio
async def test_cleanup_expired_removes_expired_and_invalid_entries(cache, make_result):
    await cache.set(PROMPTS, MODEL, make_result())
    await cache.set(["old prompt"], MODEL, make_result())
    _expire(cache, ["old prompt"], MODEL)
    (cache.l2_dir / "broken.json").write_text("{", encoding="utf-8")

    removed = await cache.cleanup_expired()

    assert removed == 2
    remaining = sorted(p.name for p in cache.l2_dir.iterdir())
    assert remaining == sorted([METADATA_FILE_NAME, f"{generate_cache_key(PROMPTS, MODEL)}.json"])


@pytest.mark.asyncio
async def test_undecodable_metadata_is_replaced(cache, make_result):
    cache.l2_dir.mkdir(parents=True)
    (cache.l2_dir / METADATA_FILE_NAME).write_bytes(b"\xff\xfe\x00garbage")

    assert await cache.get(PROMPTS, MODEL) is None
    await cache.set(PROMPTS, MODEL, make_result())

    assert await cache.get(PROMPTS, MODEL) == make_result()
    metadata = json.loads((cache.l2_dir / METADATA_FILE_NAME).read_text(encoding="utf-8"))
    assert metadata["systemPromptHash"] == "sys-v1"


@pytest.mark.asyncio
async def test_undecodable_entry_is_a_miss(cache, make_result):
    await cache.set(PROMPTS, MODEL, make_result())
    cache.l1_cache.clear()
    (cache.l2_dir / f"{generate_cache_key(PROMPTS, MODEL)}.json").write_bytes(b"\xff\xfe\x00garbage")

    assert await cache.get(PROMPTS, MODEL) is None


def test_cache_key_accepts_lone_surrogates():
    key = generate_cache_key(["bad \ud800 prompt"], MODEL)

    assert len(key) == 64
    assert key != generate_cache_key(["bad \udfff prompt"], MODEL)
