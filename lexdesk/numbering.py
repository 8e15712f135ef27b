"""
Client and case number formats.

    client: ABC/005
    case:   ABC/005/LIT/01/2024
"""

import re
from typing import Optional

CLIENT_SEQUENCE_WIDTH = 3
CASE_SEQUENCE_WIDTH = 2
MAX_PREFIX_LENGTH = 5

CLIENT_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[^/]+)/(?P<seq>\d+)$")


def pad_sequence(number: int, width: int) -> str:
    return str(number).zfill(width)


def generate_client_number(prefix: str, number: int) -> str:
    return f"{prefix}/{pad_sequence(number, CLIENT_SEQUENCE_WIDTH)}"


def generate_case_number(prefix: str, client_number: str, matter_type: str, case_number: int, year: int) -> str:
    """client_number is the client's padded sequence ("005"), not the full client number."""
    return f"{prefix}/{client_number}/{matter_type}/{pad_sequence(case_number, CASE_SEQUENCE_WIDTH)}/{year}"


def next_sequence(current_max: Optional[int]) -> int:
    """The number after the highest one in use (1 when none)."""
    return (current_max or 0) + 1


def normalize_prefix(prefix: Optional[str]) -> str:
    return (prefix or "").strip().upper()


def client_sequence_part(client_number: Optional[str], sequential_number: Optional[int]) -> Optional[str]:
    """Padded client sequence, from the stored number when present."""
    if sequential_number is not None:
        return pad_sequence(sequential_number, CLIENT_SEQUENCE_WIDTH)
    match = CLIENT_NUMBER_PATTERN.match(client_number or "")
    return match.group("seq") if match else None
