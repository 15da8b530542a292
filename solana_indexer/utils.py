import base64
import logging
from typing import Any, Optional

import orjson as json
from solders.pubkey import Pubkey

logger = logging.getLogger(__name__)


def is_valid_public_key(address: str) -> bool:
    """Check that address is a base58 encoded 32-byte public key."""
    if not isinstance(address, str) or not address:
        return False
    try:
        Pubkey.from_string(address)
        return True
    except Exception:
        return False


def shorten_address(address: str, chars: int = 4) -> str:
    return f"{address[:chars]}...{address[-chars:]}"


def parse_account_data(data: Optional[bytes], encoding: Optional[str] = None) -> Any:
    """
    Decode raw account data.

    :param data:     Raw bytes as returned by getAccountInfo.
    :param encoding: "base64" returns a base64 string, "jsonParsed" decodes
                     the bytes as UTF-8 JSON. Anything else returns the bytes.
    :return:         Decoded payload, the raw bytes when decoding fails,
                     or None for empty data.
    """
    if not data:
        return None

    try:
        if encoding == "base64":
            return base64.b64encode(data).decode("ascii")

        if encoding == "jsonParsed":
            return json.loads(data)

        return data
    except ValueError as e:
        logger.debug(f"Could not decode account data as {encoding}: {e}")
        return data
