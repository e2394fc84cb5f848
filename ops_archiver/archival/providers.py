"""Static provider configuration: physical tables and partition layout."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class Provider(str, Enum):
    BORK = "bork"
    EITJE = "eitje"


ALL_PROVIDERS = "all"


@dataclass(frozen=True)
class ProviderTables:
    raw_table: str
    aggregate_table: str
    # eitje records are split per upstream endpoint (hours, revenue, ...)
    partition_by_endpoint: bool = False


PROVIDER_TABLES: Dict[Provider, ProviderTables] = {
    Provider.BORK: ProviderTables(
        raw_table="bork_raw_data",
        aggregate_table="bork_aggregated",
    ),
    Provider.EITJE: ProviderTables(
        raw_table="eitje_raw_data",
        aggregate_table="eitje_aggregated",
        partition_by_endpoint=True,
    ),
}


def resolve_providers(selection: str) -> List[Provider]:
    """Expand ``"all"`` or a single provider name into run order."""
    if selection == ALL_PROVIDERS:
        return [Provider.BORK, Provider.EITJE]
    try:
        return [Provider(selection)]
    except ValueError:
        choices = ", ".join([p.value for p in Provider] + [ALL_PROVIDERS])
        raise ValueError(f"Unknown provider '{selection}', expected one of: {choices}")
