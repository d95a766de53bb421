from __future__ import annotations

from .fields import FieldDescriptor, StorageType, TableSchema

"""Field table of the post office index (``post_info``).

Source labels are the exact header texts of the Ukrposhta ``postindex.xlsx``
workbook. Address ranks order region, district and settlement inside the
projected address string, separately for each language.
"""

__all__ = [
    "POST_INFO_FIELDS",
    "POST_INFO_SCHEMA",
    "LANGUAGES",
]

LANGUAGES = ("ukr", "en")

POST_INFO_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor(
        "post_office_id",
        StorageType.CODE,
        length=5,
        source_label="Поштовий індекс відділення зв`язку (Post code of post office)",
    ),
    FieldDescriptor(
        "region_ukr_id",
        StorageType.DICTIONARY_REF,
        source_label="Область",
        dictionary="region_ukr",
        language="ukr",
        address_rank=1,
    ),
    FieldDescriptor(
        "district_old_ukr_id",
        StorageType.DICTIONARY_REF,
        source_label="Район (старий)",
        dictionary="district_old_ukr",
        language="ukr",
    ),
    FieldDescriptor(
        "district_new_ukr_id",
        StorageType.DICTIONARY_REF,
        source_label="Район (новий)",
        dictionary="district_new_ukr",
        language="ukr",
        address_rank=2,
    ),
    FieldDescriptor(
        "settlement_ukr_id",
        StorageType.DICTIONARY_REF,
        source_label="Населений пункт",
        dictionary="settlement_ukr",
        language="ukr",
        address_rank=3,
    ),
    FieldDescriptor(
        "postal_code",
        StorageType.CODE,
        length=5,
        source_label="Поштовий індекс (Postal code)",
    ),
    FieldDescriptor(
        "region_en_id",
        StorageType.DICTIONARY_REF,
        source_label="Region (Oblast)",
        dictionary="region_en",
        language="en",
        address_rank=1,
    ),
    FieldDescriptor(
        "district_new_en_id",
        StorageType.DICTIONARY_REF,
        source_label="District new (Raion new)",
        dictionary="district_new_en",
        language="en",
        address_rank=2,
    ),
    FieldDescriptor(
        "settlement_en_id",
        StorageType.DICTIONARY_REF,
        source_label="Settlement",
        dictionary="settlement_en",
        language="en",
        address_rank=3,
    ),
    FieldDescriptor(
        "post_office_ukr",
        StorageType.TEXT,
        length=255,
        source_label="Вiддiлення зв`язку",
        language="ukr",
    ),
    FieldDescriptor(
        "post_office_en",
        StorageType.TEXT,
        length=255,
        source_label="Post office",
        language="en",
    ),
)

POST_INFO_SCHEMA = TableSchema(
    table_name="post_info",
    key_field="post_office_id",
    fields=POST_INFO_FIELDS,
)
