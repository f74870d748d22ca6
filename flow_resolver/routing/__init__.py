from flow_resolver.routing.rail_catalog import (
    RAIL_CATALOG,
    UNIVERSAL_RAILS,
    is_compatible,
    lookup_rail,
    parse_accepted_rails,
)

__all__ = ["RAIL_CATALOG", "UNIVERSAL_RAILS", "is_compatible", "lookup_rail", "parse_accepted_rails"]
