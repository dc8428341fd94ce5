"""Read-only repository over the legacy flat document store."""


from portal.domain.legacy_document import LegacyDocument
from portal.repositories.base import ReadRepository


class LegacyDocumentRepository(ReadRepository[LegacyDocument]):
    model = LegacyDocument

    def _base_query(self):
        return super()._base_query().where(LegacyDocument.is_active.is_(True))
