"""
Import Schemas
Shapes returned by the import and homepage endpoints.
"""

from typing import Any, Dict, List, Optional, TypedDict


class ImportRunDict(TypedDict, total=False):
    id: str
    kind: str
    source: str
    status: str           # processing | completed | failed
    totalRows: int
    importedRows: int
    failedRows: int
    skippedRows: int
    errorMessage: Optional[str]
    createdAt: Optional[str]
    updatedAt: Optional[str]


class HomepageSectionDict(TypedDict, total=False):
    id: int
    sectionName: str
    title: Optional[str]
    subtitle: Optional[str]
    content: Optional[str]
    imagePath: Optional[str]
    buttonText: Optional[str]
    buttonUrl: Optional[str]
    additionalData: Optional[Dict[str, Any]]
    isActive: bool
    sortOrder: int


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def import_run_to_dict(run) -> ImportRunDict:
    return {
        "id": run.id,
        "kind": run.kind,
        "source": run.source,
        "status": run.status,
        "totalRows": run.total_rows,
        "importedRows": run.imported_rows,
        "failedRows": run.failed_rows,
        "skippedRows": run.skipped_rows,
        "errorMessage": run.error_message,
        "createdAt": _iso(run.created_at),
        "updatedAt": _iso(run.updated_at),
    }


def homepage_section_to_dict(section) -> HomepageSectionDict:
    return {
        "id": section.id,
        "sectionName": section.section_name,
        "title": section.title,
        "subtitle": section.subtitle,
        "content": section.content,
        "imagePath": section.image_path,
        "buttonText": section.button_text,
        "buttonUrl": section.button_url,
        "additionalData": section.additional_data,
        "isActive": section.is_active,
        "sortOrder": section.sort_order,
    }


def homepage_sections_to_list(sections) -> List[HomepageSectionDict]:
    return [homepage_section_to_dict(s) for s in sections]
