from .tables import (
    DepartmentCatalog,
    DepartmentProfile,
    GenericProfile,
    Lexicon,
    PersonaTemplate,
    load_catalog,
    load_lexicon,
)

__all__ = [
    "DepartmentCatalog",
    "DepartmentProfile",
    "GenericProfile",
    "Lexicon",
    "PersonaTemplate",
    "load_catalog",
    "load_lexicon",
]
