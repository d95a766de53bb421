from __future__ import annotations

from ..db.statements import quote_ident
from ..models.fields import FieldDescriptor, TableSchema

"""Read-side address projection.

For one language the dictionary-backed fields carrying an address rank are
ordered by rank; their labels (joined from the dictionaries at query time) are
concatenated into a single ``address`` column usable for substring search and
sorting. ``CONCAT_WS`` skips NULL parts and ``NULLIF`` turns empty labels into
NULL, so missing parts never leave a dangling separator.
"""

__all__ = [
    "DEFAULT_SEPARATOR",
    "ADDRESS_COLUMN",
    "address_fields",
    "address_search_columns",
    "build_address_expression",
    "build_select",
]

DEFAULT_SEPARATOR = ", "
ADDRESS_COLUMN = "address"
MAIN_ALIAS = "t"


def _dict_alias(descriptor: FieldDescriptor) -> str:
    return f"d_{descriptor.name}"


def _label_expr(descriptor: FieldDescriptor) -> str:
    return f"{quote_ident(_dict_alias(descriptor))}.{quote_ident('value')}"


def _sql_literal(text: str) -> str:
    # the fragment is always executed with parameters, so % must be doubled
    return "'" + text.replace("'", "''").replace("%", "%%") + "'"


def address_fields(schema: TableSchema, language: str) -> list[FieldDescriptor]:
    """Dictionary fields of ``language`` with an address rank, ascending by rank."""
    ranked = [
        f
        for f in schema.dictionary_fields
        if f.language == language and f.address_rank is not None
    ]
    return sorted(ranked, key=lambda f: f.address_rank)  # type: ignore[arg-type, return-value]


def address_search_columns(schema: TableSchema, language: str) -> list[str]:
    """Label expressions matched by the address substring filter."""
    return [_label_expr(f) for f in address_fields(schema, language)]


def build_address_expression(
    schema: TableSchema, language: str, separator: str = DEFAULT_SEPARATOR
) -> str:
    parts = [f"NULLIF({_label_expr(f)}, '')" for f in address_fields(schema, language)]
    if not parts:
        return "''"
    return f"CONCAT_WS({_sql_literal(separator)}, {', '.join(parts)})"


def build_select(schema: TableSchema, language: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """SELECT over the main table with labels resolved for ``language``.

    Dictionary columns are exposed under their category name (``region_ukr``),
    scalar columns under their own name, plus the ``address`` column. The
    returned text has no WHERE/ORDER BY so callers can append them.
    """
    main = quote_ident(MAIN_ALIAS)
    select_parts: list[str] = []
    joins: list[str] = []
    for f in schema.fields_for_language(language):
        if f.is_dictionary:
            alias = quote_ident(_dict_alias(f))
            select_parts.append(f"{_label_expr(f)} AS {quote_ident(f.dictionary)}")  # type: ignore[arg-type]
            joins.append(
                f"LEFT JOIN {quote_ident(f.dictionary)} AS {alias} "  # type: ignore[arg-type]
                f"ON {alias}.{quote_ident('id')} = {main}.{quote_ident(f.name)}"
            )
        else:
            select_parts.append(f"{main}.{quote_ident(f.name)}")
    select_parts.append(f"{main}.{quote_ident(schema.manual_field)}")
    select_parts.append(
        f"{build_address_expression(schema, language, separator)} AS {quote_ident(ADDRESS_COLUMN)}"
    )
    sql = f"SELECT {', '.join(select_parts)} FROM {quote_ident(schema.table_name)} AS {main}"
    if joins:
        sql += " " + " ".join(joins)
    return sql
