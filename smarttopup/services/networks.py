from typing import Optional

from ..enums import Network

# Ordered: the first carrier listing a prefix wins.
NETWORK_PREFIXES = (
    (Network.MTN, ("0703", "0706", "0803", "0806", "0810", "0813", "0814", "0816", "0903", "0906", "0913", "0916")),
    (Network.AIRTEL, ("0701", "0708", "0802", "0808", "0812", "0901", "0902", "0904", "0907", "0912")),
    (Network.GLO, ("0705", "0805", "0807", "0811", "0815", "0905", "0915")),
    (Network.NINE_MOBILE, ("0809", "0817", "0818", "0908", "0909")),
)


def resolve_network(cleaned_number: str) -> Optional[Network]:
    """Carrier for an 11-digit local number, or None when it cannot be told."""
    if not cleaned_number or len(cleaned_number) != 11 or not cleaned_number.isdigit():
        return None
    prefix = cleaned_number[:4]
    for network, prefixes in NETWORK_PREFIXES:
        if prefix in prefixes:
            return network
    return None


def format_phone_number(phone: str) -> str:
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) == 11:
        return f"{digits[:4]} {digits[4:7]} {digits[7:]}"
    return phone
