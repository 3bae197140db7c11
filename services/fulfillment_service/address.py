"""Storefront address -> upstream address.

Pure functions, no I/O. ``normalize`` is the only place an UpstreamAddress
is built.
"""

from typing import Any, Mapping, Optional, Union

from services.fulfillment_service.errors import AddressValidationError
from services.fulfillment_service.schemas import (
    AddressInput,
    UpstreamAddress,
    parse_payload,
)

REQUIRED_FIELDS = ("addressee", "addr1", "city", "state", "zip")

DEFAULT_COUNTRY = "US"

AddressLike = Union[AddressInput, Mapping[str, Any], None]


def to_address_input(address: AddressLike) -> AddressInput:
    if isinstance(address, AddressInput):
        return address
    return parse_payload(AddressInput, dict(address or {}), "stored shipping address")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def missing_fields(address: AddressLike) -> list[str]:
    """Every required field that is absent or blank, in a stable order."""
    address = to_address_input(address)
    return [name for name in REQUIRED_FIELDS if _clean(getattr(address, name)) is None]


def normalize(address: AddressLike, default_country: str = DEFAULT_COUNTRY) -> UpstreamAddress:
    """Build the upstream address or raise AddressValidationError listing all gaps."""
    address = to_address_input(address)
    missing = missing_fields(address)
    if missing:
        raise AddressValidationError(missing)

    return UpstreamAddress(
        addressee=_clean(address.addressee),
        attention=_clean(address.attention),
        addr1=_clean(address.addr1),
        addr2=_clean(address.addr2),
        city=_clean(address.city),
        state=_clean(address.state).upper(),
        zip=_clean(address.zip),
        country=(_clean(address.country) or default_country).upper(),
    )


def format_one_line(address: AddressLike) -> str:
    """Short single-line rendering for logs; blanks show as (missing)."""
    address = to_address_input(address)

    def part(name: str) -> str:
        return _clean(getattr(address, name)) or "(missing)"

    return f"{part('addr1')}, {part('city')}, {part('state')} {part('zip')}"
