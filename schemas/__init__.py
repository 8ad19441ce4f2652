"""
Import Schemas Package
Response shapes for the import and homepage endpoints.
"""

from .import_schemas import (
    ImportRunDict,
    HomepageSectionDict,
    import_run_to_dict,
    homepage_section_to_dict,
    homepage_sections_to_list,
)

__all__ = [
    "ImportRunDict",
    "HomepageSectionDict",
    "import_run_to_dict",
    "homepage_section_to_dict",
    "homepage_sections_to_list",
]
