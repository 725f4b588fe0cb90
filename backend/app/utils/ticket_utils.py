"""
Ticket helpers
---------------------------------
Features:
- Category → subcategory mapping and subcategory validation
- Ticket number generation (`CT-` + six digits)
- Ticket reference parsing (numeric id or ticket number)

Usage:
- generate_ticket_number() - new random ticket number (uniqueness is checked by the caller)
- canonical_category() - known category names in their canonical spelling
- validate_subcategory() - check a category/subcategory pair
- parse_ticket_ref() - split "42" / "CT-123456" into (id, ticket_number)
"""

import random
import re
from typing import Optional, Tuple

TICKET_PREFIX = "CT-"
TICKET_NUMBER_PATTERN = re.compile(r"^CT-[0-9]{6}$")

CATEGORIES = [
    "Electricity",
    "Water",
    "Roads",
    "Waste Management",
    "Public Transport",
    "Healthcare",
    "Education",
    "Security",
    "Parks & Recreation",
    "Government Services",
    "Other",
]

SUBCATEGORIES = {
    "Electricity": ["Power Outage", "Billing Issues", "Infrastructure", "Other"],
    "Water": ["Supply Interruption", "Quality Issues", "Billing", "Leakage", "Other"],
    "Roads": ["Maintenance", "Traffic", "Signage", "Construction", "Other"],
    "Waste Management": ["Collection", "Recycling", "Illegal Dumping", "Other"],
    "Public Transport": ["Bus Services", "Taxi Services", "Infrastructure", "Other"],
    "Healthcare": ["Facilities", "Services", "Staff", "Other"],
    "Education": ["Schools", "Teachers", "Curriculum", "Facilities", "Other"],
    "Security": ["Police", "Crime", "Street Lighting", "Other"],
    "Parks & Recreation": ["Facilities", "Maintenance", "Events", "Other"],
    "Government Services": ["Customer Service", "Documentation", "Procedures", "Other"],
    "Other": ["General"],
}


def same_category(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive category comparison"""
    if a is None or b is None:
        return False
    return a.strip().casefold() == b.strip().casefold()


def canonical_category(name: str) -> str:
    """Known categories in their canonical spelling, anything else stripped"""
    name = name.strip()
    return next((c for c in CATEGORIES if same_category(c, name)), name)


def validate_subcategory(category: str, subcategory: Optional[str]) -> Tuple[bool, str]:
    """
    Check that a subcategory belongs to its category

    Unknown categories are free text and accept any subcategory.

    Returns:
        (is valid, error message or "")
    """
    if not subcategory:
        return True, ""
    for known, subs in SUBCATEGORIES.items():
        if same_category(known, category):
            if any(same_category(s, subcategory) for s in subs):
                return True, ""
            return False, f"Subcategory {subcategory!r} is not valid for {known}"
    return True, ""


def generate_ticket_number() -> str:
    """CT-100000 .. CT-999999"""
    return f"{TICKET_PREFIX}{random.randint(100000, 999999)}"


def parse_ticket_ref(ref: str) -> Tuple[Optional[int], Optional[str]]:
    """
    Split a ticket reference

    Returns:
        (id, None) for a numeric id, (None, ticket_number) for `CT-XXXXXX`,
        (None, None) if the reference is neither
    """
    ref = ref.strip()
    if ref.isascii() and ref.isdecimal():
        return int(ref), None
    if TICKET_NUMBER_PATTERN.match(ref.upper()):
        return None, ref.upper()
    return None, None
