"""Test batch repositories."""

from unittest.mock import patch

import pytest
from redis.exceptions import RedisError

from gengate.exceptions import QueueError
from gengate.models.batch import Batch, BatchItemRecord
from gengate.repositories.batch_repository import (
    InMemoryBatchRepository,
    RedisBatchRepository,
)


@pytest.fixture
def batch():
    """Create batch with one cached item."""
    return Batch(
        subject_id="user-1",
        name="Covers",
        items=[BatchItemRecord(index=0, status="cached")],
    )


class TestInMemoryBatchRepository:
    """Test in-memory batch records."""

    @pytest.mark.asyncio
    async def test_should_save_and_get(self, batch):
        """Test round trip keeps items."""
        repo = InMemoryBatchRepository()
        await repo.save(batch)

        stored = await repo.get(batch.batch_id)
        assert stored.name == "Covers"
        assert stored.total == 1
        assert await repo.get("missing") is None

    @pytest.mark.asyncio
    async def test_should_mark_completed_once(self, batch):
        """Test only the first completion mark wins."""
        repo = InMemoryBatchRepository()

        assert await repo.mark_completed(batch.batch_id)
        assert not await repo.mark_completed(batch.batch_id)


class TestRedisBatchRepository:
    """Test Redis batch records."""

    @pytest.mark.asyncio
    async def test_should_store_with_expiry(
        self, mock_redis_pool, mock_redis_client, batch
    ):
        """Test records expire after retention."""
        with patch(
            "gengate.repositories.batch_repository.Redis",
            return_value=mock_redis_client,
        ):
            await RedisBatchRepository(mock_redis_pool, retention_seconds=60).save(batch)

        mock_redis_client.set.assert_called_once_with(
            f"batch:{batch.batch_id}", batch.model_dump_json(), ex=60
        )

    @pytest.mark.asyncio
    async def test_should_load_batch(self, mock_redis_pool, mock_redis_client, batch):
        """Test stored JSON is parsed."""
        mock_redis_client.get.return_value = batch.model_dump_json()
        with patch(
            "gengate.repositories.batch_repository.Redis",
            return_value=mock_redis_client,
        ):
            stored = await RedisBatchRepository(mock_redis_pool).get(batch.batch_id)

        assert stored.batch_id == batch.batch_id
        assert stored.items[0].status == "cached"

    @pytest.mark.asyncio
    async def test_should_mark_completed_with_set_nx(
        self, mock_redis_pool, mock_redis_client
    ):
        """Test completion mark is a conditional set."""
        mock_redis_client.set.side_effect = [True, None]
        with patch(
            "gengate.repositories.batch_repository.Redis",
            return_value=mock_redis_client,
        ):
            repo = RedisBatchRepository(mock_redis_pool, retention_seconds=60)
            first = await repo.mark_completed("batch_1")
            second = await repo.mark_completed("batch_1")

        assert first is True
        assert second is False
        mock_redis_client.set.assert_called_with(
            "batch:batch_1:completed", "1", nx=True, ex=60
        )

    @pytest.mark.asyncio
    async def test_should_wrap_redis_errors(self, mock_redis_pool, mock_redis_client):
        """Test Redis failures surface as QueueError."""
        mock_redis_client.get.side_effect = RedisError("down")
        with patch(
            "gengate.repositories.batch_repository.Redis",
            return_value=mock_redis_client,
        ):
            with pytest.raises(QueueError):
                await RedisBatchRepository(mock_redis_pool).get("batch_1")
