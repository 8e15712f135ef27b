"""
Document listing with search, type filter and case/client scoping.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .backend import BackendClient
from .errors import ValidationFailed
from .schemas import DocumentRow

logger = logging.getLogger(__name__)

# Fragments of file_type (MIME type or extension) per filter
TYPE_FILTERS: Dict[str, Tuple[str, ...]] = {
    "pdf": ("pdf",),
    "doc": ("doc", "msword", "wordprocessingml", "rtf", "odt"),
    "image": ("image/", "png", "jpg", "jpeg", "gif", "webp", "tif"),
}


def matches_type(document: DocumentRow, type_filter: str) -> bool:
    file_type = (document.file_type or "").lower()
    return any(fragment in file_type for fragment in TYPE_FILTERS[type_filter])


class DocumentService:
    def __init__(self, backend: BackendClient, user_id: str):
        self.backend = backend
        self.user_id = user_id

    def list(
        self,
        search: Optional[str] = None,
        type_filter: Optional[str] = None,
        case_id: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> List[DocumentRow]:
        """Newest first. search matches name or description."""
        if type_filter and type_filter not in TYPE_FILTERS:
            raise ValidationFailed({"type": f"Type must be one of {', '.join(TYPE_FILTERS)}"})

        query = self.backend.table("documents").select("*").eq("uploaded_by", self.user_id)
        if case_id:
            query = query.eq("case_id", case_id)
        if client_id:
            query = query.eq("client_id", client_id)
        term = (search or "").strip()
        if term:
            query = query.ilike_any(("name", "description"), f"%{term}%")

        documents = [
            DocumentRow.model_validate(r)
            for r in query.order("uploaded_at", desc=True).execute().data
        ]
        if type_filter:
            documents = [d for d in documents if matches_type(d, type_filter)]
        return documents
