"""The fixed catalog of tradable outcomes.

Each outcome is a firm; a share in a firm pays one chip if that firm turns
out to be the answer. The catalog is static configuration and never changes
while the service is running.
"""

from typing import NamedTuple, Optional, Tuple


class Firm(NamedTuple):
    name: str
    slug: str
    logo: str


FIRMS: Tuple[Firm, ...] = (
    Firm("Jane Street", "jane-street", "/logos/jane-street.jpeg"),
    Firm("Citadel", "citadel", "/logos/citadel.jpeg"),
    Firm("Bridgewater", "bridgewater", "/logos/bridgewater.png"),
    Firm("D E Shaw", "de-shaw", "/logos/de-shaw.png"),
    Firm("Radix", "radix", "/logos/radix.jpeg"),
    Firm("ArrowStreet", "arrowstreet", "/logos/arrowstreet.png"),
    Firm("PDT Partners", "pdt-partners", "/logos/pdt-partners.jpeg"),
    Firm("Point72", "point72", "/logos/point72.jpeg"),
    Firm("Hudson River Trading", "hrt", "/logos/hrt.png"),
    Firm("Jump Trading", "jump-trading", "/logos/jump-trading.jpeg"),
    Firm("Optiver", "optiver", "/logos/optiver.jpeg"),
    Firm("Two Sigma", "two-sigma", "/logos/two-sigma.png"),
    Firm("Five Rings", "five-rings", "/logos/five-rings.jpeg"),
    Firm("Voleon", "voleon", "/logos/voleon.jpeg"),
)

OUTCOMES: Tuple[str, ...] = tuple(firm.name for firm in FIRMS)

_BY_NAME = {firm.name: firm for firm in FIRMS}


def get_catalog() -> Tuple[str, ...]:
    """Return outcome identifiers in catalog order."""
    return OUTCOMES


def is_outcome(value) -> bool:
    return isinstance(value, str) and value in _BY_NAME


def get_firm(name: str) -> Optional[Firm]:
    return _BY_NAME.get(name)
