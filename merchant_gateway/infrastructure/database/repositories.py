"""Data access layer for merchant documents"""

from copy import deepcopy
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from merchant_gateway.domain.exceptions import MerchantNotFoundError
from merchant_gateway.domain.models import Merchant
from merchant_gateway.infrastructure.database.models import MerchantRecord


class MerchantRepository:
    """Repository for merchant documents"""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, merchant_id: str, document: Dict[str, Any]) -> MerchantRecord:
        """Create or replace the stored document"""
        record = self.db.get(MerchantRecord, merchant_id)
        if record is None:
            record = MerchantRecord(merchant_id=merchant_id, document=document)
            self.db.add(record)
        else:
            record.document = document
        self.db.flush()
        return record

    def get_document(self, merchant_id: str) -> Optional[Dict[str, Any]]:
        record = self.db.get(MerchantRecord, merchant_id)
        return deepcopy(record.document) if record is not None else None

    def get_merchant(self, merchant_id: str) -> Merchant:
        """
        Load a merchant snapshot for scoring.

        Raises:
            MerchantNotFoundError: If no document is stored under merchant_id
        """
        document = self.get_document(merchant_id)
        if document is None:
            raise MerchantNotFoundError(f"Merchant {merchant_id} not found")
        return Merchant.from_document(document, merchant_id=merchant_id)

    def update_admin_metadata(self, merchant_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge keys into the document's adminMetadata map.

        Raises:
            MerchantNotFoundError: If no document is stored under merchant_id
        """
        record = self.db.get(MerchantRecord, merchant_id)
        if record is None:
            raise MerchantNotFoundError(f"Merchant {merchant_id} not found")

        # Assign a new dict so the JSON column registers the change
        document = deepcopy(record.document)
        admin_metadata = document.get("adminMetadata")
        if not isinstance(admin_metadata, dict):
            admin_metadata = {}
        admin_metadata.update(updates)
        document["adminMetadata"] = admin_metadata
        record.document = document
        self.db.flush()
        return document
