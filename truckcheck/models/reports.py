import json
import logging
from typing import Any, Dict, List, Mapping, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Column, DateTime, Integer, MetaData, Table, Text, func

from ..schemas.reports import DamagePoint, Report, ReportCreate

logger = logging.getLogger(__name__)

# Sub-fields stored as JSON text, with the structured type they decode to
SERIALIZED_FIELDS = {
    "damage_points": TypeAdapter(List[DamagePoint]),
    "inspection_values": TypeAdapter(Dict[int, bool]),
    "tool_values": TypeAdapter(Dict[int, int]),
    "tool_images": TypeAdapter(Dict[int, List[str]]),
}

SCALAR_FIELDS = (
    "driver_name", "truck_number", "date",
    "driver_signature", "equipment_manager_signature",
    "logistics_manager_signature", "warehouse_manager_signature",
)


class ColumnMap:
    """Bidirectional mapping between Report field names and one backend's column names."""

    def __init__(self, mapping: Dict[str, str]):
        self._to_column = dict(mapping)
        self._to_field = {column: field for field, column in mapping.items()}
        if len(self._to_field) != len(self._to_column):
            raise ValueError("column names must be unique")

    def to_column(self, field: str) -> str:
        return self._to_column[field]

    def to_field(self, column: str) -> str:
        return self._to_field[column]

    def items(self):
        return self._to_column.items()

    def has_column(self, column: str) -> bool:
        return column in self._to_field


# Embedded backend keeps the mixed case names of the wire format
MIXED_CASE_COLUMNS = ColumnMap({
    "id": "id",
    "driver_name": "driverName",
    "truck_number": "truckNumber",
    "date": "date",
    "damage_points": "damagePoints",
    "inspection_values": "inspectionValues",
    "tool_values": "toolValues",
    "tool_images": "toolImages",
    "driver_signature": "driverSignature",
    "equipment_manager_signature": "equipmentManagerSignature",
    "logistics_manager_signature": "logisticsManagerSignature",
    "warehouse_manager_signature": "warehouseManagerSignature",
    "created_at": "createdAt",
})

# Networked backend folds identifiers to lowercase (unquoted Postgres names)
LOWERCASE_COLUMNS = ColumnMap({field: column.lower() for field, column in MIXED_CASE_COLUMNS.items()})


def build_reports_table(metadata: MetaData, columns: ColumnMap) -> Table:
    """The `reports` table, named with the given backend's columns."""
    c = columns.to_column
    return Table(
        "reports", metadata,
        Column(c("id"), Integer, primary_key=True, autoincrement=True),
        Column(c("driver_name"), Text, nullable=False),
        Column(c("truck_number"), Text, nullable=False),
        Column(c("date"), Text, nullable=False),
        Column(c("damage_points"), Text),
        Column(c("inspection_values"), Text),
        Column(c("tool_values"), Text),
        Column(c("tool_images"), Text),
        Column(c("driver_signature"), Text),
        Column(c("equipment_manager_signature"), Text),
        Column(c("logistics_manager_signature"), Text),
        Column(c("warehouse_manager_signature"), Text),
        Column(c("created_at"), DateTime, server_default=func.current_timestamp()),
    )


# ==========================================
# ENCODE / DECODE
# ==========================================
def encode_for_storage(report: ReportCreate, backend) -> Dict[str, Any]:
    """Row values keyed by the backend's column names. `id` and `createdAt` are left to the store."""
    data = report.model_dump(mode="json")
    row = {}
    for field in SCALAR_FIELDS:
        row[backend.columns.to_column(field)] = data.get(field)
    for field in SERIALIZED_FIELDS:
        value = data.get(field)
        # Raw text kept by a lenient decode is written back as-is
        if value is not None and not isinstance(value, str):
            value = json.dumps(value, ensure_ascii=False)
        row[backend.columns.to_column(field)] = value
    return row


def lenient_decode(field: str, raw: Any) -> Union[Any, str]:
    """Structured value of a serialized column, or the raw text when it does not decode."""
    if raw is None or not isinstance(raw, str):
        return raw
    try:
        parsed = json.loads(raw)
        if parsed is None:
            return None
        return SERIALIZED_FIELDS[field].validate_python(parsed)
    except (ValueError, RecursionError, PydanticValidationError):
        logger.warning("Column %s holds undecodable text, returning it raw", field)
        return raw


def decode_from_storage(row: Mapping[str, Any], backend) -> Report:
    data = {}
    for column, value in row.items():
        if not backend.columns.has_column(column):
            continue
        field = backend.columns.to_field(column)
        data[field] = lenient_decode(field, value) if field in SERIALIZED_FIELDS else value
    return Report.model_validate(data)
