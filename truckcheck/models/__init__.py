from .reports import (
    LOWERCASE_COLUMNS,
    MIXED_CASE_COLUMNS,
    ColumnMap,
    build_reports_table,
    decode_from_storage,
    encode_for_storage,
)
