"""Unit tests for TenantDBService against a mocked Motor collection."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, OperationFailure, ServerSelectionTimeoutError

from org_platform.errors import AlreadyExistsError, ErrorCode, UnavailableError
from org_platform.tenant_management.db_service import TenantDBService
from org_platform.tenant_management.models import Tenant, TenantAdmin


@pytest.fixture
def mock_collection():
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.delete_one = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.create_indexes = AsyncMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__.return_value = mock_collection
    db.command = AsyncMock(return_value={"ok": 1})
    return db


@pytest.fixture
def service(mock_db) -> TenantDBService:
    return TenantDBService(db=mock_db)


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(
        organization_name="acme",
        partition_id="org_acme",
        admin=TenantAdmin(email="admin@acme.com", password_hash="hash"),
    )


class TestInsert:
    @pytest.mark.asyncio
    async def test_insert_writes_full_record(self, service, mock_collection, tenant):
        await service.insert(tenant)

        written = mock_collection.insert_one.await_args.args[0]
        assert written["organization_name"] == "acme"
        assert written["admin"]["password_hash"] == "hash"
        assert written["version"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "index_message, expected",
        [
            ("E11000 duplicate key error index: organization_name_1", "Organization with this name already exists"),
            ("E11000 duplicate key error index: admin.email_1", "Email is already registered"),
            ("E11000 duplicate key error index: partition_id_1", "Partition for this organization already exists"),
        ],
    )
    async def test_duplicate_key_maps_to_already_exists(
        self, service, mock_collection, tenant, index_message, expected
    ):
        mock_collection.insert_one.side_effect = DuplicateKeyError(index_message)

        with pytest.raises(AlreadyExistsError) as exc_info:
            await service.insert(tenant)

        assert exc_info.value.message == expected
        assert exc_info.value.code == ErrorCode.ORG_ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_connection_failure_is_unavailable(self, service, mock_collection, tenant):
        mock_collection.insert_one.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(UnavailableError) as exc_info:
            await service.insert(tenant)

        assert exc_info.value.status_code == 503


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_by_name_case_folds(self, service, mock_collection, tenant):
        mock_collection.find_one.return_value = tenant.model_dump()

        found = await service.get_by_name("  ACME ")

        mock_collection.find_one.assert_awaited_once_with({"organization_name": "acme"})
        assert found == tenant

    @pytest.mark.asyncio
    async def test_get_by_email_missing(self, service, mock_collection):
        assert await service.get_by_email("Nobody@Acme.com") is None
        mock_collection.find_one.assert_awaited_once_with({"admin.email": "nobody@acme.com"})

    @pytest.mark.asyncio
    async def test_name_or_email_is_one_disjunctive_query(self, service, mock_collection):
        await service.find_by_name_or_email("Acme", "Admin@Acme.com")

        mock_collection.find_one.assert_awaited_once_with(
            {"$or": [{"organization_name": "acme"}, {"admin.email": "admin@acme.com"}]}
        )

    @pytest.mark.asyncio
    async def test_find_conflict_excludes_self(self, service, mock_collection):
        await service.find_conflict(email="admin@acme.com", exclude_tenant_id="tenant_1")

        mock_collection.find_one.assert_awaited_once_with(
            {"$or": [{"admin.email": "admin@acme.com"}], "tenant_id": {"$ne": "tenant_1"}}
        )

    @pytest.mark.asyncio
    async def test_find_conflict_without_fields(self, service, mock_collection):
        assert await service.find_conflict() is None
        mock_collection.find_one.assert_not_awaited()


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_is_conditional_on_version(self, service, mock_collection, tenant):
        mock_collection.find_one_and_update.return_value = {**tenant.model_dump(), "version": 4}

        updated = await service.update(tenant.tenant_id, 3, {"admin.email": "new@acme.com"})

        query, update = mock_collection.find_one_and_update.await_args.args
        assert query == {"tenant_id": tenant.tenant_id, "version": 3}
        assert update["$inc"] == {"version": 1}
        assert update["$set"]["admin.email"] == "new@acme.com"
        assert "updated_at" in update["$set"]
        assert mock_collection.find_one_and_update.await_args.kwargs["return_document"] == ReturnDocument.AFTER
        assert updated.version == 4

    @pytest.mark.asyncio
    async def test_version_mismatch_returns_none(self, service, tenant):
        assert await service.update(tenant.tenant_id, 1, {"admin.email": "x@acme.com"}) is None

    @pytest.mark.asyncio
    async def test_update_duplicate_key(self, service, mock_collection, tenant):
        mock_collection.find_one_and_update.side_effect = DuplicateKeyError("dup key: organization_name_1")

        with pytest.raises(AlreadyExistsError):
            await service.update(tenant.tenant_id, 1, {"organization_name": "globex"})


class TestDeleteCountPing:
    @pytest.mark.asyncio
    async def test_delete(self, service, mock_collection):
        mock_collection.delete_one.return_value = MagicMock(deleted_count=1)

        assert await service.delete("tenant_1") is True
        mock_collection.delete_one.assert_awaited_once_with({"tenant_id": "tenant_1"})

    @pytest.mark.asyncio
    async def test_delete_missing(self, service, mock_collection):
        mock_collection.delete_one.return_value = MagicMock(deleted_count=0)

        assert await service.delete("tenant_1") is False

    @pytest.mark.asyncio
    async def test_count(self, service, mock_collection):
        mock_collection.count_documents.return_value = 3

        assert await service.count() == 3

    @pytest.mark.asyncio
    async def test_ping(self, service, mock_db):
        assert await service.ping() is True

        mock_db.command.side_effect = OperationFailure("unauthorized")
        assert await service.ping() is False

    @pytest.mark.asyncio
    async def test_ensure_indexes_declares_unique_fields(self, service, mock_collection):
        await service.ensure_indexes()

        indexes = mock_collection.create_indexes.await_args.args[0]
        unique_fields = [list(index.document["key"])[0] for index in indexes if index.document.get("unique")]
        assert unique_fields == ["tenant_id", "organization_name", "partition_id", "admin.email"]
