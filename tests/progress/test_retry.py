"""Transaction retry and storage failure handling in ProgressService."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from codecase.errors import ConflictError, StorageError


@pytest.mark.asyncio
async def test_retries_after_stale_version(service):
    calls = []

    async def _operation():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("row version changed")
        return "done"

    assert await service._with_retry("test", _operation) == "done"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_persistent_constraint_violation_becomes_storage_error(service):
    calls = []

    async def _operation():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(StorageError) as exc_info:
        await service._with_retry("test", _operation)

    assert exc_info.value.retryable is True
    assert len(calls) == service.settings.progress_write_attempts


@pytest.mark.asyncio
async def test_database_failure_is_not_retried(service):
    calls = []

    async def _operation():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    with pytest.raises(StorageError):
        await service._with_retry("test", _operation)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_rejections_pass_through_unchanged(service):
    async def _operation():
        raise ConflictError("already used")

    with pytest.raises(ConflictError):
        await service._with_retry("test", _operation)


@pytest.mark.asyncio
async def test_read_failure_becomes_storage_error(service):
    async def _operation():
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    with pytest.raises(StorageError):
        await service._read(_operation)


@pytest.mark.asyncio
async def test_session_usable_after_failed_write(service, register_user):
    await register_user("u1")

    async def _operation():
        raise StaleDataError("row version changed")

    with pytest.raises(StorageError):
        await service._with_retry("test", _operation)

    result = await service.complete_case("u1", "case-vanishing-blogger", 150, 60)
    assert result.success is True
