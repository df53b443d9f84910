"""
Registry Engine — Error types.

The classifier and the aggregation engine never raise; everything here belongs
to the collaborators that talk to the database or validate user input.
"""


class RegistryError(Exception):
    """Base class for failures surfaced to the caller."""


class RepositoryError(RegistryError):
    """The backing store could not complete the operation."""


class TerritoryNotFound(RepositoryError):
    def __init__(self, territory_id):
        super().__init__(f"Territory {territory_id} not found")
        self.territory_id = territory_id


class ReferentialIntegrityError(RepositoryError):
    """A write referenced a municipality, hazard event or factor that does not exist."""


class CodelistError(RegistryError):
    """Invalid codelist edit (duplicate band name, unknown tier, missing key)."""


class FilterError(RegistryError):
    """Invalid filter combination requested by the caller."""


class CodelistItemNotFound(CodelistError):
    def __init__(self, table, key):
        super().__init__(f"{table} item '{key}' not found")
        self.table = table
        self.key = key
