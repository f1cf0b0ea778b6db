"""
事業所ディレクトリ

マスタストアの OfficeMapping（事業所名, 記録ファイルID, 報告書ファイルID）と
利用者マスタ（利用者名, 事業所）を参照する。
"""
import logging
from typing import List

from kirokun.core.config import settings
from kirokun.core.exceptions import OfficeNotFoundError
from kirokun.messages import ja
from kirokun.schemas.office import TenantStores
from kirokun.storage.base import Row, Storage
from kirokun.utils.text import cell_text

logger = logging.getLogger(__name__)

OFFICE_MAPPING_PARTITION = "OfficeMapping"
USER_MASTER_PARTITION = "利用者マスタ"


class CRUDOffice:

    async def _read_mapping(self, storage: Storage) -> List[Row]:
        master = storage.open_store(settings.MASTER_STORE_ID)
        table = await master.open_partition(OFFICE_MAPPING_PARTITION)
        if table is None:
            logger.warning(f"{OFFICE_MAPPING_PARTITION} partition is missing in master store")
            return []
        return await table.read_all()

    @staticmethod
    def _to_tenant(row: Row) -> TenantStores:
        padded = list(row) + [""] * (3 - len(row))
        return TenantStores(
            office=cell_text(padded[0]),
            record_store_id=cell_text(padded[1]),
            incident_store_id=cell_text(padded[2]) or None,
        )

    async def resolve(self, storage: Storage, office: str) -> TenantStores:
        """
        事業所名（前後空白を除いた完全一致）からストアを解決する

        Raises:
            OfficeNotFoundError: 事業所が未登録、または記録ストアが未設定の場合
        """
        target = cell_text(office)
        for row in await self._read_mapping(storage):
            if row and cell_text(row[0]) == target:
                tenant = self._to_tenant(row)
                if not tenant.record_store_id:
                    break
                return tenant
        raise OfficeNotFoundError(ja.OFFICE_NOT_FOUND.format(office=target))

    async def list_tenants(self, storage: Storage) -> List[TenantStores]:
        """記録ストアが設定されている全事業所"""
        tenants = []
        seen = set()
        for row in await self._read_mapping(storage):
            if not row or not cell_text(row[0]):
                continue
            tenant = self._to_tenant(row)
            if not tenant.record_store_id or tenant.office in seen:
                continue
            seen.add(tenant.office)
            tenants.append(tenant)
        return tenants

    async def list_offices(self, storage: Storage) -> List[str]:
        return [tenant.office for tenant in await self.list_tenants(storage)]

    async def list_users(self, storage: Storage, office: str) -> List[str]:
        """
        事業所の利用者名一覧。事業所欄が空欄の利用者は全事業所に表示する。
        """
        master = storage.open_store(settings.MASTER_STORE_ID)
        table = await master.open_partition(USER_MASTER_PARTITION)
        if table is None:
            return []
        target = cell_text(office)
        users = []
        for row in await table.read_all():
            if not row:
                continue
            name = cell_text(row[0])
            user_office = cell_text(row[1]) if len(row) > 1 else ""
            if name and (not user_office or user_office == target) and name not in users:
                users.append(name)
        return users


crud_office = CRUDOffice()
