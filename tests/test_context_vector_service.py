"""Tests for services/context_vectors/ContextVectorService.py and the components it wires."""

import asyncio

import pytest

from services.context_vectors.ContextVectorService import ContextVectorService
from shared.models.config import ContextVectorSettings
from shared.models.errors import ErrorKind, StoreError
from shared.models.results import OperationStatus
from tests.conftest import COLLECTION, bag_of_words

NOTES = "Alpha. Beta. Gamma."


def _ordered(points: list[dict]) -> list[dict]:
    return sorted(points, key=lambda p: p["payload"]["chunk_index"])


# ---------------------------------------------------------------------------
# index_file
# ---------------------------------------------------------------------------

class TestIndexFile:

    async def test_indexes_chunks_with_tags_and_provenance(self, service, fake_qdrant):
        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)

        assert result.status == OperationStatus.OK
        assert result.count == 3
        points = _ordered(fake_qdrant.stored("c1", "f1"))
        assert [p["payload"]["chunk_index"] for p in points] == [0, 1, 2]
        assert [p["payload"]["text"] for p in points] == [
            "[File: notes.txt]\nAlpha.",
            "[File: notes.txt]\nBeta.",
            "[File: notes.txt]\nGamma.",
        ]
        for point in points:
            assert point["payload"]["source_file_name"] == "notes.txt"
            assert point["payload"]["mime_type"] == "text/plain"
            assert point["vector"] == bag_of_words(point["payload"]["text"])

    async def test_upserts_one_batch_at_a_time_and_waits(self, service, fake_qdrant, fake_embedder):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        # three chunks with batch size 2
        assert [len(call) for call in fake_embedder.calls] == [2, 1]
        assert fake_qdrant.upsert_waits == ["true", "true"]

    async def test_point_ids_are_unique_and_fresh_per_run(self, service, fake_qdrant):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        first_ids = {p["id"] for p in fake_qdrant.stored("c1", "f1")}
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        second_ids = {p["id"] for p in fake_qdrant.stored("c1", "f1")}
        assert len(first_ids) == len(second_ids) == 3
        assert first_ids.isdisjoint(second_ids)

    async def test_reindex_replaces_instead_of_appending(self, service, fake_qdrant):
        long_text = " ".join(["alpha beta"] * 12)
        await service.index_file("c1", "f1", "notes.txt", "text/plain", long_text)
        assert len(fake_qdrant.stored("c1", "f1")) > 3

        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", "Omega.")

        points = fake_qdrant.stored("c1", "f1")
        assert result.count == 1
        assert [p["payload"]["text"] for p in points] == ["[File: notes.txt]\nOmega."]
        assert points[0]["payload"]["chunk_index"] == 0

    async def test_delete_happens_before_first_upsert(self, service, fake_qdrant):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        writes = [
            path for method, path in fake_qdrant.requests
            if path.endswith("/points") or path.endswith("/points/delete")
        ]
        assert writes[0].endswith("/points/delete")
        assert all(path.endswith("/points") for path in writes[1:])

    async def test_reindex_leaves_other_files_alone(self, service, fake_qdrant):
        await service.index_file("c1", "f1", "a.txt", "text/plain", NOTES)
        await service.index_file("c1", "f2", "b.txt", "text/plain", NOTES)
        await service.index_file("c1", "f1", "a.txt", "text/plain", "Omega.")
        assert len(fake_qdrant.stored("c1", "f2")) == 3
        assert len(fake_qdrant.stored("c1", "f1")) == 1

    @pytest.mark.parametrize("raw_text", [None, "", "   \n\t  "])
    async def test_blank_text_is_skipped_without_requests(self, service, fake_qdrant, fake_embedder, raw_text):
        result = await service.index_file("c1", "f1", "scan.pdf", "application/pdf", raw_text)
        assert result.status == OperationStatus.SKIPPED
        assert result.error_kind == ErrorKind.EXTRACTION_SKIPPED
        assert fake_qdrant.requests == []
        assert fake_embedder.calls == []

    async def test_same_file_runs_are_serialized_last_one_wins(self, service, fake_qdrant):
        first, second = await asyncio.gather(
            service.index_file("c1", "f1", "notes.txt", "text/plain", " ".join(["alpha beta"] * 10)),
            service.index_file("c1", "f1", "notes.txt", "text/plain", "Omega. Theta."),
        )
        assert first.is_ok and second.is_ok
        points = _ordered(fake_qdrant.stored("c1", "f1"))
        assert [p["payload"]["text"] for p in points] == [
            "[File: notes.txt]\nOmega.",
            "[File: notes.txt]\nTheta.",
        ]
        assert [p["payload"]["chunk_index"] for p in points] == [0, 1]

    async def test_different_files_index_concurrently(self, service, fake_qdrant):
        results = await asyncio.gather(*(
            service.index_file("c1", f"f{i}", f"{i}.txt", "text/plain", NOTES) for i in range(4)
        ))
        assert all(result.count == 3 for result in results)
        assert len(fake_qdrant.stored("c1")) == 12

    async def test_concurrent_embedding_keeps_chunk_order(self, helper_config, rag_client, embed_client, fake_qdrant):
        settings = ContextVectorSettings(chunk_size=10, chunk_overlap=2, embed_batch_size=2, embed_concurrency=3)
        service = ContextVectorService(helper_config, rag_client, embed_client, settings=settings)
        text = "Alpha. Beta. Gamma. Delta. Epsilon."

        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", text)

        points = _ordered(fake_qdrant.stored("c1", "f1"))
        assert result.count == 5
        assert [p["payload"]["chunk_index"] for p in points] == [0, 1, 2, 3, 4]
        assert [p["payload"]["text"].split("\n")[1] for p in points] == ["Alpha.", "Beta.", "Gamma.", "Delta.", "Epsilon."]
        assert all(p["vector"] == bag_of_words(p["payload"]["text"]) for p in points)


# ---------------------------------------------------------------------------
# failures at the boundary
# ---------------------------------------------------------------------------

class TestBoundaryFailures:

    async def test_embedding_failure_is_reported_not_raised(self, service, fake_embedder):
        fake_embedder.fail = True
        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert result.status == OperationStatus.FAILED
        assert result.error_kind == ErrorKind.EMBEDDING_PROVIDER_FAILURE
        assert result.detail

    async def test_store_failure_is_reported_not_raised(self, service, fake_qdrant):
        fake_qdrant.fail_on.add("upsert")
        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert result.status == OperationStatus.FAILED
        assert result.error_kind == ErrorKind.STORE_FAILURE

    async def test_failed_run_does_not_block_the_next_one(self, service, fake_qdrant):
        fake_qdrant.fail_on.add("upsert")
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        fake_qdrant.fail_on.clear()
        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert result.is_ok
        assert len(fake_qdrant.stored("c1", "f1")) == 3

    async def test_unexpected_error_is_reported_without_kind(self, service, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(service.indexer, "index_file", explode)
        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert result.status == OperationStatus.FAILED
        assert result.error_kind is None
        assert "disk on fire" in result.detail

    async def test_delete_failure_is_reported(self, service, fake_qdrant):
        fake_qdrant.fail_on.add("delete")
        file_result = await service.delete_file_vectors("c1", "f1")
        context_result = await service.delete_context_vectors("c1")
        assert file_result.error_kind == ErrorKind.STORE_FAILURE
        assert context_result.error_kind == ErrorKind.STORE_FAILURE

    async def test_query_failures_degrade_to_empty(self, service, fake_qdrant, fake_embedder):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)

        fake_embedder.fail = True
        assert await service.query_contexts(["c1"], "alpha") == []

        fake_embedder.fail = False
        fake_qdrant.fail_on.add("search")
        assert await service.query_contexts(["c1"], "alpha") == []

    async def test_collection_dropped_out_of_band_is_recreated(self, service, fake_qdrant):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        del fake_qdrant.collections[COLLECTION]
        del fake_qdrant.points[COLLECTION]

        failed = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert failed.error_kind == ErrorKind.STORE_FAILURE
        assert not service.collection.is_ensured

        result = await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert result.is_ok
        assert fake_qdrant.create_calls == 2
        assert len(fake_qdrant.stored("c1", "f1")) == 3

    async def test_search_on_dropped_collection_recovers(self, service, fake_qdrant):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        del fake_qdrant.collections[COLLECTION]
        del fake_qdrant.points[COLLECTION]

        assert await service.query_contexts(["c1"], "alpha") == []
        assert await service.query_contexts(["c1"], "alpha") == []
        assert fake_qdrant.create_calls == 2

    async def test_other_store_failures_keep_collection_ensured(self, service, fake_qdrant):
        await service.ensure_collection()
        fake_qdrant.fail_on.add("delete")
        await service.delete_file_vectors("c1", "f1")
        assert service.collection.is_ensured

    async def test_ensure_collection_raises_for_startup(self, service, fake_qdrant):
        fake_qdrant.fail_on.add("create")
        with pytest.raises(StoreError) as info:
            await service.ensure_collection()
        assert info.value.kind == ErrorKind.STORE_FAILURE


# ---------------------------------------------------------------------------
# deletion
# ---------------------------------------------------------------------------

class TestDeletion:

    async def _seed(self, service):
        await service.index_file("c1", "f1", "a.txt", "text/plain", NOTES)
        await service.index_file("c1", "f2", "b.txt", "text/plain", NOTES)
        await service.index_file("c2", "f1", "c.txt", "text/plain", NOTES)

    async def test_delete_file_removes_only_that_file(self, service, fake_qdrant):
        await self._seed(service)
        result = await service.delete_file_vectors("c1", "f1")
        assert result.is_ok
        assert fake_qdrant.stored("c1", "f1") == []
        assert len(fake_qdrant.stored("c1", "f2")) == 3
        assert len(fake_qdrant.stored("c2", "f1")) == 3

    async def test_delete_context_removes_every_file_of_it(self, service, fake_qdrant):
        await self._seed(service)
        result = await service.delete_context_vectors("c1")
        assert result.is_ok
        assert fake_qdrant.stored("c1") == []
        assert len(fake_qdrant.stored("c2")) == 3

    async def test_deletes_are_idempotent(self, service, fake_qdrant):
        assert (await service.delete_file_vectors("c9", "f9")).is_ok
        assert (await service.delete_file_vectors("c9", "f9")).is_ok
        assert (await service.delete_context_vectors("c9")).is_ok
        # the collection is created on first need
        assert fake_qdrant.create_calls == 1

    async def test_deleted_file_is_no_longer_retrievable(self, service):
        await service.index_file("c1", "f1", "a.txt", "text/plain", NOTES)
        await service.delete_file_vectors("c1", "f1")
        assert await service.query_contexts(["c1"], "alpha") == []


# ---------------------------------------------------------------------------
# retrieval
# ---------------------------------------------------------------------------

class TestRetrieval:

    async def test_best_match_comes_first(self, service):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        texts = await service.query_contexts(["c1"], "beta")
        assert texts[0] == "[File: notes.txt]\nBeta."
        assert len(texts) == 3

    async def test_results_are_ranked_by_score(self, service):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", "Alpha beta. Gamma. Alpha.")
        hits = await service.search(["c1"], "alpha")
        scores = [hit.score for hit in hits]
        assert scores == sorted(scores, reverse=True)

    async def test_only_requested_contexts_are_searched(self, service):
        await service.index_file("c1", "f1", "mine.txt", "text/plain", "Alpha.")
        await service.index_file("c2", "f1", "theirs.txt", "text/plain", "Alpha. Alpha alpha.")

        hits = await service.search(["c1"], "alpha")

        assert hits
        assert {hit.payload.context_id for hit in hits} == {"c1"}

    async def test_multiple_contexts_are_combined(self, service):
        await service.index_file("c1", "f1", "a.txt", "text/plain", "Alpha.")
        await service.index_file("c2", "f1", "b.txt", "text/plain", "Alpha.")
        await service.index_file("c3", "f1", "c.txt", "text/plain", "Alpha.")

        hits = await service.search(["c1", "c2", "c2"], "alpha")

        assert {hit.payload.context_id for hit in hits} == {"c1", "c2"}

    async def test_limit_caps_results(self, service):
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert len(await service.query_contexts(["c1"], "alpha", limit=1)) == 1

    async def test_default_limit_applies(self, helper_config, rag_client, embed_client):
        settings = ContextVectorSettings(chunk_size=10, chunk_overlap=2, embed_batch_size=2, query_default_limit=2)
        service = ContextVectorService(helper_config, rag_client, embed_client, settings=settings)
        await service.index_file("c1", "f1", "notes.txt", "text/plain", NOTES)
        assert len(await service.query_contexts(["c1"], "alpha")) == 2

    @pytest.mark.parametrize("context_ids,query,limit", [
        ([], "alpha", None),
        (["", ""], "alpha", None),
        (["c1"], "", None),
        (["c1"], "   ", None),
        (["c1"], "alpha", 0),
    ])
    async def test_degenerate_queries_short_circuit(self, service, fake_qdrant, fake_embedder, context_ids, query, limit):
        assert await service.query_contexts(context_ids, query, limit) == []
        assert fake_qdrant.requests == []
        assert fake_embedder.calls == []

    async def test_query_before_any_index_returns_empty(self, service, fake_qdrant):
        assert await service.query_contexts(["c1"], "alpha") == []
        assert fake_qdrant.create_calls == 1


# ---------------------------------------------------------------------------
# end to end
# ---------------------------------------------------------------------------

class TestLifecycle:

    async def test_index_query_delete_reindex(self, service):
        assert (await service.index_file("C1", "F1", "notes.txt", "text/plain", NOTES)).count >= 3

        hits = await service.search(["C1"], "Alpha", 1)
        assert len(hits) == 1
        assert "Alpha" in hits[0].payload.text
        assert hits[0].payload.file_id == "F1"

        assert (await service.delete_context_vectors("C1")).is_ok
        assert await service.query_contexts(["C1"], "Alpha") == []

        await service.index_file("C1", "F1", "notes.txt", "text/plain", NOTES)
        await service.index_file("C1", "F1", "notes.txt", "text/plain", "Omega.")
        texts = await service.query_contexts(["C1"], "Alpha Beta Gamma Omega")
        assert texts == ["[File: notes.txt]\nOmega."]
