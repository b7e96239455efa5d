"""
Query result and column metadata models.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ColumnMeta:
    """
    Source of one result column.
    
    Produced either from driver-native metadata or inferred from the
    statement text. Empty strings mean "unknown".
    """
    
    output_name: str
    source_table: str = ""
    source_column: str = ""
    
    @property
    def is_complete(self) -> bool:
        """True if both the source table and column are known."""
        return bool(self.source_table and self.source_column)


class QueryResult(BaseModel):
    """
    Outcome of a facade query.
    
    ``data`` holds rows only for SELECT/SHOW statements; ``last_insert_id``
    is set only for INSERT/UPDATE statements and INSERT ... SELECT.
    """
    
    success: bool = False
    error: str = ""
    data: list[dict[str, Any]] = Field(default_factory=list)
    last_insert_id: int | None = None
    
    def to_dict(self) -> dict[str, Any]:
        """
        Convert the result to the plain dictionary contract.
        
        Returns:
            Dictionary with success, error and data, plus last_insert_id
            when the statement produced one
        """
        result: dict[str, Any] = {
            "success": self.success,
            "error": self.error,
            "data": self.data,
        }
        if "last_insert_id" in self.model_fields_set:
            result["last_insert_id"] = self.last_insert_id
        return result
