"""Tests for BatchReconciler — polling outstanding batch jobs."""

from __future__ import annotations

import pytest

from embedsync.exceptions import BatchJobFailedError, ProviderError, StorageError
from embedsync.models import ModificationRequest, Product, ProductEmbedding
from embedsync.providers import ProviderRegistry
from embedsync.reconciler import BatchReconciler, group_by_batch
from embedsync.types import (
    EmbeddingEntity,
    EmbeddingResult,
    EmbeddingStatus,
    ProductSnapshot,
)

TENANT_A = "tenant_a"
MODEL = "fake-embedding"
OTHER_MODEL = "other-embedding"
TABLE = "product_embeddings"

# ------------------------------------------------------------------
# Fake provider
# ------------------------------------------------------------------


class FakeBatchProvider:
    """Answers polls from a per-batch script.

    ``outcomes[batch_id]`` is ``"in_progress"``, an exception to raise, or a
    dict of record id to vector (``None`` means that line errored).
    """

    def __init__(self, outcomes: dict, model: str = MODEL) -> None:
        self.outcomes = outcomes
        self._model = model
        self.polls: list[tuple[str, list[str]]] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return self._model

    def supports_batch_processing(self) -> bool:
        return True

    async def generate_embeddings(self, items):
        raise AssertionError("not used by the reconciler")

    async def generate_batch_embeddings(self, items):
        raise AssertionError("not used by the reconciler")

    async def get_batch_embeddings(self, batch_id, item_ids, schema_name, entity_type):
        self.polls.append((batch_id, list(item_ids)))
        outcome = self.outcomes[batch_id]
        if isinstance(outcome, Exception):
            raise outcome

        def result(item_id, **kwargs):
            return EmbeddingResult(
                entity_id=item_id,
                entity_type=entity_type,
                schema_name=schema_name,
                batch_id=batch_id,
                **kwargs,
            )

        if outcome == "in_progress":
            return [result(i, status=EmbeddingStatus.PROCESSING) for i in item_ids]
        results = []
        for item_id in item_ids:
            vector = outcome.get(item_id)
            if vector is None:
                results.append(result(item_id, status=EmbeddingStatus.FAILED, error="line failed"))
            else:
                results.append(result(item_id, embedding=vector, status=EmbeddingStatus.COMPLETED))
        return results

    async def close(self) -> None:
        pass


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _reconciler(ledger, store, *providers, **kwargs) -> BatchReconciler:
    registry = ProviderRegistry()
    for p in providers:
        registry.register(p.model_name, lambda p=p: p)
    return BatchReconciler(ledger, store, registry, **kwargs)


async def _in_flight(seed, batch_id: str, n: int, model: str = MODEL) -> list[str]:
    ids = []
    for i in range(n):
        product = Product(name=f"{batch_id}-{i}")
        record = ProductEmbedding(
            product_id=product.id,
            content_markdown=f"# {batch_id}-{i}",
            embedding_status="processing",
            batch_id=batch_id,
            embedding_model=model,
        )
        await seed(TENANT_A, product, record)
        ids.append(record.id)
    return ids


async def _job_status(fetch) -> str:
    [job] = [
        r for r in await fetch(None, ModificationRequest) if r.schema_name == TENANT_A
    ]
    return job.status


# ------------------------------------------------------------------
# Grouping
# ------------------------------------------------------------------


class TestGroupByBatch:
    def _entity(self, record_id, batch_id, model):
        return EmbeddingEntity(
            id=record_id,
            table_name=TABLE,
            source=ProductSnapshot(id="p", name="n", type="product"),
            status=EmbeddingStatus.PROCESSING,
            embedding_model=model,
            batch_id=batch_id,
        )

    def test_groups_by_batch_and_model(self):
        groups = group_by_batch(
            [
                self._entity("1", "b1", "m1"),
                self._entity("2", "b1", "m1"),
                self._entity("3", "b1", "m2"),
                self._entity("4", "b2", "m1"),
            ]
        )

        assert [(g.batch_id, g.model, g.record_ids) for g in groups] == [
            ("b1", "m1", ["1", "2"]),
            ("b1", "m2", ["3"]),
            ("b2", "m1", ["4"]),
        ]

    def test_skips_records_without_batch_or_model(self, caplog):
        groups = group_by_batch(
            [self._entity("1", None, "m1"), self._entity("2", "b1", None)]
        )
        assert groups == []
        assert "Skipping embedding 1" in caplog.text


# ------------------------------------------------------------------
# Reconciliation
# ------------------------------------------------------------------


class TestReconcile:
    async def test_in_progress_changes_nothing_and_keeps_job(self, ledger, store, seed, fetch):
        await _in_flight(seed, "b1", 2)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": "in_progress"})

        summary = await _reconciler(ledger, store, provider).run()

        records = await fetch(TENANT_A, ProductEmbedding)
        assert {r.embedding_status for r in records} == {"processing"}
        assert {r.batch_id for r in records} == {"b1"}
        assert summary.requests[0].reviewed is False
        assert await _job_status(fetch) == "pending"
        assert len(await ledger.get_pending_batch_jobs()) == 1

    async def test_in_progress_single_poll_policy_reviews(self, ledger, store, seed, fetch):
        await _in_flight(seed, "b1", 2)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": "in_progress"})

        summary = await _reconciler(
            ledger, store, provider, review_on_terminal_only=False
        ).run()

        records = await fetch(TENANT_A, ProductEmbedding)
        assert {r.embedding_status for r in records} == {"processing"}
        assert summary.requests[0].reviewed is True
        assert await ledger.get_pending_batch_jobs() == []

    async def test_completed_k_of_n(self, ledger, store, seed, fetch):
        ids = await _in_flight(seed, "b1", 3)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": {ids[0]: [0.1], ids[1]: [0.2]}})

        summary = await _reconciler(ledger, store, provider).run()

        rows = {r.id: r for r in await fetch(TENANT_A, ProductEmbedding)}
        assert rows[ids[0]].embedding == [0.1]
        assert rows[ids[0]].embedding_status == "completed"
        assert rows[ids[0]].content_markdown == "# b1-0"
        assert rows[ids[0]].batch_id is None
        assert rows[ids[2]].embedding_status == "failed"
        assert rows[ids[2]].embedding is None
        assert rows[ids[2]].batch_id is None

        embedded = {p.name: p.is_embedded for p in await fetch(TENANT_A, Product)}
        assert embedded == {"b1-0": True, "b1-1": True, "b1-2": False}

        request = summary.requests[0]
        assert request.reviewed is True
        assert len(request.embedding_results) == 3
        assert sum(r.embedding is not None for r in request.embedding_results) == 2

    async def test_failed_lines_left_processing_when_disabled(self, ledger, store, seed, fetch):
        ids = await _in_flight(seed, "b1", 2)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": {ids[0]: [0.1]}})

        await _reconciler(ledger, store, provider, mark_failed_items=False).run()

        rows = {r.id: r for r in await fetch(TENANT_A, ProductEmbedding)}
        assert rows[ids[0]].embedding_status == "completed"
        assert rows[ids[1]].embedding_status == "processing"

    async def test_group_failure_is_isolated(self, ledger, store, seed, fetch):
        failing = await _in_flight(seed, "b1", 1)
        ok = await _in_flight(seed, "b2", 1)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider(
            {"b1": ProviderError("network down"), "b2": {ok[0]: [0.9]}}
        )

        summary = await _reconciler(ledger, store, provider).run()

        rows = {r.id: r for r in await fetch(TENANT_A, ProductEmbedding)}
        assert rows[failing[0]].embedding_status == "processing"
        assert rows[failing[0]].batch_id == "b1"
        assert rows[ok[0]].embedding_status == "completed"
        assert summary.requests[0].reviewed is False

    @pytest.mark.parametrize("mark_failed_items", [True, False])
    async def test_failed_batch_marks_records_failed(
        self, ledger, store, seed, fetch, mark_failed_items
    ):
        ids = await _in_flight(seed, "b1", 2)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": BatchJobFailedError("Batch b1 failed")})

        summary = await _reconciler(
            ledger, store, provider, mark_failed_items=mark_failed_items
        ).run()

        rows = {r.id: r for r in await fetch(TENANT_A, ProductEmbedding)}
        assert {rows[i].embedding_status for i in ids} == {"failed"}
        assert {rows[i].batch_id for i in ids} == {None}
        assert summary.requests[0].reviewed is True
        assert await ledger.get_pending_batch_jobs() == []
        assert await store.get_processing_embeddings_with_batch_id(TENANT_A, TABLE) == []

        entries = summary.requests[0].embedding_results
        assert sorted(r.entity_id for r in entries) == sorted(ids)
        assert {r.status for r in entries} == {EmbeddingStatus.FAILED}
        assert {r.error for r in entries} == {"Batch b1 failed"}

    async def test_failed_batch_stays_open_when_marking_fails(
        self, ledger, store, seed, fetch, monkeypatch
    ):
        await _in_flight(seed, "b1", 1)
        await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": BatchJobFailedError("Batch b1 expired")})

        async def broken_mark(results, schema_name, table_name):
            raise StorageError("tenant schema unavailable")

        monkeypatch.setattr(store, "mark_failed_embeddings", broken_mark)

        summary = await _reconciler(ledger, store, provider).run()

        assert summary.requests[0].reviewed is False
        assert len(await ledger.get_pending_batch_jobs()) == 1
        [row] = await fetch(TENANT_A, ProductEmbedding)
        assert row.embedding_status == "processing"

    async def test_groups_resolve_their_own_model(self, ledger, store, seed, fetch):
        small = await _in_flight(seed, "b1", 1, model=MODEL)
        large = await _in_flight(seed, "b2", 1, model=OTHER_MODEL)
        await ledger.create_batch_job(TENANT_A, TABLE)
        p1 = FakeBatchProvider({"b1": {small[0]: [1.0]}}, model=MODEL)
        p2 = FakeBatchProvider({"b2": {large[0]: [2.0]}}, model=OTHER_MODEL)

        await _reconciler(ledger, store, p1, p2).run()

        assert p1.polls == [("b1", small)]
        assert p2.polls == [("b2", large)]
        rows = {r.id: r for r in await fetch(TENANT_A, ProductEmbedding)}
        assert rows[small[0]].embedding_model == MODEL
        assert rows[large[0]].embedding_model == OTHER_MODEL

    async def test_job_with_nothing_processing_is_reviewed(self, ledger, store):
        await ledger.create_batch_job(TENANT_A, TABLE)

        summary = await _reconciler(ledger, store, FakeBatchProvider({})).run()

        assert summary.to_dict()["pendingBatchRequests"] == 1
        assert summary.requests[0].reviewed is True
        assert summary.requests[0].processing_embeddings == []

    async def test_job_failure_yields_empty_entry(self, ledger, store, caplog):
        job_id = await ledger.create_batch_job(TENANT_A, "customers")

        summary = await _reconciler(ledger, store, FakeBatchProvider({})).run()

        assert summary.to_dict() == {
            "pendingBatchRequests": 1,
            "requests": [
                {
                    "id": job_id,
                    "schemaName": TENANT_A,
                    "tableName": "customers",
                    "reviewed": False,
                    "processingEmbeddings": [],
                    "embeddingResults": [],
                }
            ],
        }
        assert "Unsupported table name: customers" in caplog.text

    async def test_summary_lists_processing_records(self, ledger, store, seed):
        ids = await _in_flight(seed, "b1", 1)
        job_id = await ledger.create_batch_job(TENANT_A, TABLE)
        provider = FakeBatchProvider({"b1": "in_progress"})

        summary = await _reconciler(ledger, store, provider).run()

        data = summary.to_dict()["requests"][0]
        assert data["id"] == job_id
        assert data["processingEmbeddings"] == [
            {"id": ids[0], "batchId": "b1", "embeddingModel": MODEL}
        ]
        assert data["embeddingResults"][0]["status"] == "processing"


@pytest.mark.parametrize("policy", [True, False])
async def test_unknown_model_group_keeps_records(ledger, store, seed, fetch, policy):
    ids = await _in_flight(seed, "b1", 1, model="unregistered")
    await ledger.create_batch_job(TENANT_A, TABLE)

    summary = await _reconciler(
        ledger, store, FakeBatchProvider({}), review_on_terminal_only=policy
    ).run()

    [row] = await fetch(TENANT_A, ProductEmbedding)
    assert row.id == ids[0]
    assert row.embedding_status == "processing"
    assert summary.requests[0].reviewed is (not policy)
