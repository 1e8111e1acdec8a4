"""Read-only access to the chemical audit trail."""

from sqlalchemy import select

from inventory_kernel.domain.dtos import ChemicalAuditRecord
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.models.chemical_audit import ChemicalAudit
from inventory_kernel.selectors.base import BaseSelector


class ChemicalAuditSelector(BaseSelector[ChemicalAudit]):
    def list_for_item(
        self,
        item_id,
        lot_number: str | None = None,
    ) -> list[ChemicalAuditRecord]:
        """
        Entries for a chemical, newest first.  Entries outlive the item and
        the lot, so an unknown id simply yields an empty list.
        """
        stmt = select(ChemicalAudit).where(
            ChemicalAudit.item_id == parse_uuid(item_id, "item_id")
        )
        if lot_number is not None:
            stmt = stmt.where(ChemicalAudit.lot_number == lot_number)
        stmt = stmt.order_by(ChemicalAudit.seq.desc())
        return [ChemicalAuditRecord.from_model(row) for row in self.session.scalars(stmt)]

    def list_for_transaction(self, transaction_id) -> list[ChemicalAuditRecord]:
        stmt = (
            select(ChemicalAudit)
            .where(ChemicalAudit.transaction_id == parse_uuid(transaction_id, "transaction_id"))
            .order_by(ChemicalAudit.seq)
        )
        return [ChemicalAuditRecord.from_model(row) for row in self.session.scalars(stmt)]
