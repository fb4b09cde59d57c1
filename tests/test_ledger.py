"""Tests for ModificationLedger and TenantConfigLookup."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from embedsync.exceptions import NotFoundError
from embedsync.models import (
    AIConfig,
    CompanyModification,
    CompanyRequest,
    ModelDetails,
    ModificationRequest,
)

TENANT_A = "tenant_a"
TENANT_B = "tenant_b"


async def _modification(seed, schema: str, table: str = "product_embeddings", **kwargs):
    request = ModificationRequest(schema_name=schema, table_name=table, **kwargs)
    modification = CompanyModification(modification_request_id=request.id)
    await seed(None, request, modification)
    return modification


# ==================================================================
# TenantConfigLookup
# ==================================================================


class TestTenantConfigLookup:
    async def test_reads_config_and_dimensions(self, config_lookup, seed):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small", batch_embedding=True))
        await seed(None, ModelDetails(name="text-embedding-3-small", vector_number=1536))

        config = await config_lookup.get(TENANT_A)

        assert config.schema_name == TENANT_A
        assert config.embedding_model == "text-embedding-3-small"
        assert config.batch_embedding is True
        assert config.vector_dimensions == 1536

    async def test_unknown_model_has_no_dimensions(self, config_lookup, seed):
        await seed(TENANT_A, AIConfig(embedding_model="custom-model"))

        config = await config_lookup.get(TENANT_A)

        assert config.vector_dimensions is None
        assert config.batch_embedding is False

    async def test_missing_config(self, config_lookup):
        with pytest.raises(NotFoundError, match=TENANT_A):
            await config_lookup.get(TENANT_A)

    async def test_deleted_config_is_ignored(self, config_lookup, seed):
        await seed(
            TENANT_A,
            AIConfig(embedding_model="text-embedding-3-small", deleted_at=datetime.now(UTC)),
        )
        with pytest.raises(NotFoundError):
            await config_lookup.get(TENANT_A)

    async def test_config_without_model(self, config_lookup, seed):
        await seed(TENANT_A, AIConfig(embedding_model=None))
        with pytest.raises(NotFoundError):
            await config_lookup.get(TENANT_A)

    async def test_configs_are_per_tenant(self, config_lookup, seed):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small"))
        await seed(TENANT_B, AIConfig(embedding_model="text-embedding-3-large"))

        assert (await config_lookup.get(TENANT_A)).embedding_model == "text-embedding-3-small"
        assert (await config_lookup.get(TENANT_B)).embedding_model == "text-embedding-3-large"


# ==================================================================
# Generation side
# ==================================================================


class TestPendingModifications:
    async def test_joins_config(self, ledger, seed):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small"))
        modification = await _modification(seed, TENANT_A)

        [pending] = await ledger.get_pending_modifications_with_config()

        assert pending.id == modification.id
        assert pending.schema_name == TENANT_A
        assert pending.table_name == "product_embeddings"
        assert pending.config.embedding_model == "text-embedding-3-small"

    async def test_skips_tenant_without_config(self, ledger, seed):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small"))
        await _modification(seed, TENANT_A)
        await _modification(seed, TENANT_B)

        pending = await ledger.get_pending_modifications_with_config()

        assert [p.schema_name for p in pending] == [TENANT_A]

    async def test_excludes_reviewed_and_deleted(self, ledger, seed):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small"))
        await _modification(seed, TENANT_A, status="reviewed")
        await _modification(seed, TENANT_A, deleted_at=datetime.now(UTC))

        assert await ledger.get_pending_modifications_with_config() == []

    async def test_mark_as_reviewed(self, ledger, seed, fetch):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small"))
        modification = await _modification(seed, TENANT_A)

        assert await ledger.mark_as_reviewed(modification.id) is True

        [request] = await fetch(None, ModificationRequest)
        assert request.status == "reviewed"
        assert await ledger.get_pending_modifications_with_config() == []

    async def test_mark_unknown_as_reviewed(self, ledger):
        assert await ledger.mark_as_reviewed("missing") is False


# ==================================================================
# Batch jobs
# ==================================================================


class TestBatchJobs:
    async def test_create_and_list(self, ledger, fetch):
        job_id = await ledger.create_batch_job(TENANT_A, "document_embeddings")

        [job] = await ledger.get_pending_batch_jobs()
        assert job.id == job_id
        assert job.schema_name == TENANT_A
        assert job.table_name == "document_embeddings"

        [row] = await fetch(None, CompanyRequest)
        [request] = await fetch(None, ModificationRequest)
        assert row.modification_request_id == request.id
        assert request.status == "pending"

    async def test_batch_job_request_is_not_a_modification(self, ledger, seed):
        await seed(TENANT_A, AIConfig(embedding_model="text-embedding-3-small"))
        await ledger.create_batch_job(TENANT_A, "product_embeddings")

        assert await ledger.get_pending_modifications_with_config() == []

    async def test_mark_reviewed_removes_from_pending(self, ledger):
        job_id = await ledger.create_batch_job(TENANT_A, "product_embeddings")

        assert await ledger.mark_batch_job_reviewed(job_id) is True
        assert await ledger.get_pending_batch_jobs() == []

    async def test_jobs_listed_oldest_first(self, ledger):
        first = await ledger.create_batch_job(TENANT_A, "product_embeddings")
        second = await ledger.create_batch_job(TENANT_B, "product_embeddings")

        jobs = await ledger.get_pending_batch_jobs()

        assert [j.id for j in jobs] == [first, second]
