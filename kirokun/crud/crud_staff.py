from typing import List

from kirokun.core.config import settings
from kirokun.models.enums import StaffRole
from kirokun.schemas.office import StaffEntry
from kirokun.schemas.session import AllOffices, SpecificOffices
from kirokun.storage.base import Row, Storage
from kirokun.utils.text import cell_text, split_csv

STAFF_MASTER_PARTITION = "職員マスタ"


def parse_scope(value) -> AllOffices | SpecificOffices:
    """事業所欄が空欄なら全事業所、それ以外はカンマ区切りの事業所"""
    offices = split_csv(value)
    if not offices:
        return AllOffices()
    return SpecificOffices(offices=offices)


def parse_role(value) -> StaffRole:
    try:
        return StaffRole(cell_text(value).lower() or StaffRole.staff.value)
    except ValueError:
        return StaffRole.staff


class CRUDStaff:
    """職員マスタ（氏名, 事業所, ロール, PINハッシュ）"""

    @staticmethod
    def _to_entry(row: Row) -> StaffEntry:
        padded = list(row) + [""] * (4 - len(row))
        return StaffEntry(
            name=cell_text(padded[0]),
            scope=parse_scope(padded[1]),
            role=parse_role(padded[2]),
            pin_hash=cell_text(padded[3]),
        )

    async def get_all(self, storage: Storage) -> List[StaffEntry]:
        master = storage.open_store(settings.MASTER_STORE_ID)
        table = await master.open_partition(STAFF_MASTER_PARTITION)
        if table is None:
            return []
        return [self._to_entry(row) for row in await table.read_all() if row and cell_text(row[0])]

    async def get_by_name(self, storage: Storage, name: str) -> List[StaffEntry]:
        target = cell_text(name)
        return [entry for entry in await self.get_all(storage) if entry.name == target]

    async def list_names_for_office(self, storage: Storage, office: str) -> List[str]:
        names = []
        for entry in await self.get_all(storage):
            if entry.scope.allows(office) and entry.name not in names:
                names.append(entry.name)
        return names


crud_staff = CRUDStaff()
