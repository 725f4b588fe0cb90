"""
Location helpers
---------------------------------
Features:
- Rwanda administrative divisions (provinces, districts, sectors)
- Location validation: strict for Rwanda, free text elsewhere

Usage:
- validate_location() - check a location payload before a ticket is created
"""

from typing import Optional, Tuple

RWANDA = "Rwanda"

RWANDA_PROVINCES = [
    "Kigali City",
    "Northern Province",
    "Southern Province",
    "Eastern Province",
    "Western Province",
]

RWANDA_DISTRICTS = {
    "Kigali City": ["Gasabo", "Kicukiro", "Nyarugenge"],
    "Northern Province": ["Burera", "Gakenke", "Gicumbi", "Musanze", "Rulindo"],
    "Southern Province": ["Gisagara", "Huye", "Kamonyi", "Muhanga", "Nyamagabe", "Nyanza", "Nyaruguru", "Ruhango"],
    "Eastern Province": ["Bugesera", "Gatsibo", "Kayonza", "Kirehe", "Ngoma", "Nyagatare", "Rwamagana"],
    "Western Province": ["Karongi", "Ngororero", "Nyabihu", "Nyamasheke", "Rubavu", "Rutsiro", "Rusizi"],
}

# Sector lists are only known for some districts; the others accept any sector
RWANDA_SECTORS = {
    "Gasabo": [
        "Bumbogo", "Gatsata", "Gikomero", "Gisozi", "Jabana", "Jali", "Kacyiru", "Kimihurura",
        "Kimironko", "Kinyinya", "Ndera", "Nduba", "Remera", "Rusororo", "Rutunga",
    ],
    "Kicukiro": [
        "Gahanga", "Gatenga", "Gikondo", "Kagarama", "Kanombe", "Kicukiro", "Kigarama", "Masaka",
        "Niboye", "Nyarugunga",
    ],
    "Nyarugenge": [
        "Gitega", "Kanyinya", "Kigali", "Kimisagara", "Mageragere", "Muhima", "Nyakabanda",
        "Nyamirambo", "Nyarugenge", "Rwezamenyo",
    ],
    "Musanze": ["Busogo", "Cyuve", "Gacaca", "Gataraga", "Kimonyi", "Kinigi", "Muhoza", "Muko", "Musanze", "Nkotsi"],
    "Burera": ["Butaro", "Cyanika", "Gahunga", "Gitovu", "Kagogo", "Kinoni", "Kinyababa", "Kivuye", "Nemba", "Rugarama"],
    "Huye": ["Gishamvu", "Karama", "Kigoma", "Maraba", "Mbazi", "Mukura", "Ngoma", "Ruhashya", "Rusatira", "Simbi"],
    "Nyamagabe": ["Buruhukiro", "Cyanika", "Gasaka", "Gatare", "Kaduha", "Kamegeri", "Kibirizi", "Mugano", "Musange"],
    "Kayonza": [
        "Gahini", "Kabare", "Kabarondo", "Mukarange", "Murama", "Murundi", "Mwiri", "Ndego",
        "Nyamirama", "Rwinkwavu",
    ],
    "Ngoma": ["Gashanda", "Jarama", "Karembo", "Kazo", "Kibungo", "Mugesera", "Murama", "Mutenderi", "Remera", "Rukira"],
    "Rubavu": [
        "Bugeshi", "Busasamana", "Cyanzarwe", "Gisenyi", "Kanama", "Kanzenze", "Mudende", "Nyakiliba",
        "Nyamyumba", "Rubavu",
    ],
    "Karongi": [
        "Bwishyura", "Gashari", "Gishyita", "Gitesi", "Mubuga", "Murambi", "Murundi", "Mutuntu",
        "Rubengera", "Rugabano",
    ],
}


def get_districts_by_province(province: str) -> list:
    return RWANDA_DISTRICTS.get(province, [])


def get_sectors_by_district(district: str) -> list:
    return RWANDA_SECTORS.get(district, [])


def validate_location(
    country: Optional[str],
    province: Optional[str],
    district: Optional[str],
    sector: Optional[str],
) -> Tuple[bool, str]:
    """
    Validate a ticket location

    Args:
        country: country name; only "Rwanda" is checked against the taxonomy
        province / district / sector: administrative divisions

    Returns:
        (is valid, error message or "")
    """
    if not country or country.strip().lower() != RWANDA.lower():
        return True, ""

    if province not in RWANDA_PROVINCES:
        return False, f"Unknown province for Rwanda: {province!r}"

    if district not in get_districts_by_province(province):
        return False, f"District {district!r} is not in {province}"

    known_sectors = get_sectors_by_district(district)
    if known_sectors and sector not in known_sectors:
        return False, f"Sector {sector!r} is not in {district}"

    return True, ""
