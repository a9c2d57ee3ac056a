import pytest


def test_get_missing_record_returns_none(progress_store):
    assert progress_store.get("u1", "movie", "popular") is None


def test_upsert_creates_record_at_first_page(progress_store):
    record = progress_store.upsert("u1", "movie", "popular", {"total_generated": 1, "current_index": 1})

    assert record.id is not None
    assert record.current_page == 1
    assert record.current_index == 1
    assert record.total_generated == 1
    assert record.last_updated is not None


def test_upsert_merges_into_existing_record(progress_store):
    first = progress_store.upsert("u1", "tv", "top_rated", {"current_index": 3, "total_generated": 3})
    second = progress_store.upsert("u1", "tv", "top_rated", {"current_page": 2, "current_index": 0})

    assert second.id == first.id
    assert (second.current_page, second.current_index, second.total_generated) == (2, 0, 3)


def test_keys_are_independent(progress_store):
    progress_store.upsert("u1", "movie", "popular", {"current_index": 4})
    progress_store.upsert("u1", "movie", "top_rated", {"current_index": 9})
    progress_store.upsert("u2", "movie", "popular", {"current_index": 1})

    assert progress_store.get("u1", "movie", "popular").current_index == 4
    assert progress_store.get("u1", "movie", "top_rated").current_index == 9
    assert progress_store.get("u2", "movie", "popular").current_index == 1


def test_upsert_rejects_unknown_fields(progress_store):
    with pytest.raises(ValueError):
        progress_store.upsert("u1", "movie", "popular", {"user_id": "someone-else"})


def test_reset_is_idempotent(progress_store):
    record = progress_store.upsert("u1", "movie", "popular", {"current_index": 2})

    assert progress_store.reset(record.id) is True
    assert progress_store.reset(record.id) is False
    assert progress_store.get("u1", "movie", "popular") is None


def test_reset_key(progress_store):
    progress_store.upsert("u1", "movie", "popular", {"current_index": 2})

    assert progress_store.reset_key("u1", "movie", "popular") is True
    assert progress_store.reset_key("u1", "movie", "popular") is False


def test_list_for_user_most_recent_first(progress_store):
    progress_store.upsert("u1", "movie", "popular", {"current_index": 1})
    progress_store.upsert("u1", "tv", "popular", {"current_index": 1})
    progress_store.upsert("u2", "tv", "popular", {"current_index": 1})

    records = progress_store.list_for_user("u1")

    assert [(r.media_type, r.sort_by) for r in records] == [("tv", "popular"), ("movie", "popular")]
