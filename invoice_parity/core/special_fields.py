"""
Special field definitions for energy invoices.

The built-in set covers the totals, levies, and fixed delivery costs that must
behave a certain way between the reference and the migrated rendering. A
different set can be supplied as a JSON file through
``PARITY_SPECIAL_FIELDS_FILE``.
"""

from pathlib import Path
from typing import List, Optional

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.core.logging import get_logger
from invoice_parity.models.rules import (
    Custom,
    MustDiffer,
    MustMatchWhole,
    SpecialFieldDefinition,
    special_field_list,
)

logger = get_logger(__name__)

GROUP_MUST_DIFFER = "Must differ"
GROUP_MUST_MATCH = "Must match"
GROUP_BFDC_MUST_DIFFER = "BFDC must differ"

DEFAULT_SPECIAL_FIELDS: List[SpecialFieldDefinition] = [
    SpecialFieldDefinition(
        label="Totale kosten in de verbruiksperiode",
        policy=MustDiffer(index=2),
        group=GROUP_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="Door jou te betalen",
        policy=MustDiffer(index=2),
        group=GROUP_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="Leveringskosten van stroom en gas",
        policy=MustDiffer(index=2),
        group=GROUP_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="Overheidsheffingen op stroom en gas, dit dragen we af aan de overheid",
        policy=MustMatchWhole(),
        group=GROUP_MUST_MATCH,
    ),
    SpecialFieldDefinition(
        label="Netbeheerkosten op stroom en gas, dit dragen we af aan je netbeheerder",
        policy=MustMatchWhole(),
        group=GROUP_MUST_MATCH,
    ),
    SpecialFieldDefinition(
        label="In rekening gebrachte termijnbedragen",
        policy=MustMatchWhole(),
        group=GROUP_MUST_MATCH,
    ),
    SpecialFieldDefinition(
        label="Totale netto verbruik",
        policy=MustDiffer(index=1),
        group=GROUP_BFDC_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="Vaste leveringskosten voor stroom",
        policy=Custom(predicate_id="fixed_recurring_cost"),
        group=GROUP_BFDC_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="Vaste leveringskosten voor gas",
        policy=Custom(predicate_id="fixed_recurring_cost"),
        group=GROUP_BFDC_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="TERZAKE ENERGIE GROENE STROOM TERZAKE ENERGIE DYNAMISCH",
        policy=MustDiffer(index=0),
        group=GROUP_BFDC_MUST_DIFFER,
    ),
    SpecialFieldDefinition(
        label="(01-09-2024 / 01-10-2024) | 21% BTW",
        policy=MustDiffer(index=0),
        group=GROUP_BFDC_MUST_DIFFER,
    ),
]


def load_special_fields(settings: Optional[Settings] = None) -> List[SpecialFieldDefinition]:
    """
    Return the configured special field definitions.

    Args:
        settings: Application settings; ``special_fields_file`` selects a JSON
            file holding a list of definitions

    Returns:
        The definitions from the file, or the built-in defaults

    Raises:
        pydantic.ValidationError: If the file content is not a valid list of definitions
    """
    settings = settings or get_settings()
    if not settings.special_fields_file:
        return list(DEFAULT_SPECIAL_FIELDS)

    path = Path(settings.special_fields_file)
    definitions = special_field_list.validate_json(path.read_bytes())
    logger.info("special_fields_loaded", path=str(path), count=len(definitions))
    return definitions
