from __future__ import annotations
import random
from typing import List

from .models import RawOfficeRecord, TIERS

"""
Sample office generator for local runs.

Produces partner and discovered offices whose names and addresses cover the
shapes the parser and contact extractor have to handle: suite markers, zip+4,
country suffixes, single-line addresses, missing addresses, doctor names in
several positions and plain practice brands.
"""

_rid_counter = 0
def _rid(prefix: str) -> str:
    global _rid_counter
    _rid_counter += 1
    return f"{prefix}{_rid_counter:04d}"

FIRST_NAMES = ["Jane", "John", "Maria", "David", "Priya", "Kevin", "Laura", "Samuel", "Grace", "Omar"]
LAST_NAMES = ["Alvarez", "Carter", "Nguyen", "Patel", "Okafor", "Smith", "Reyes", "Kim", "Hoffman", "Brooks"]
BRANDS = ["Sunrise Family Dental", "Bright Smiles", "Lakeside Orthodontics", "Valley Oral Surgery",
          "Downtown Dental Group", "Gentle Care Dentistry", "Premier Endodontics", "Kids Smile Center"]
STREETS = ["Main St", "Oak Ave", "Pine Rd", "Maple Dr", "Cedar Ln", "Elm Blvd", "Harbor Way", "Sunset Pkwy"]
CITIES = [("Irvine", "CA", "92618"), ("Austin", "TX", "78701"), ("Denver", "CO", "80202"),
          ("Miami", "FL", "33101"), ("Seattle", "WA", "98101"), ("Phoenix", "AZ", "85004")]


def office_name(rng: random.Random) -> str:
    first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
    brand = rng.choice(BRANDS)
    return rng.choice([
        brand,
        f"{brand}: Dr. {first} {last}",
        f"Dr. {first} {last}",
        f"{first} {last}, DDS",
        f"{first} {last} DMD",
        f"{first} {last}",
    ])


def office_address(rng: random.Random) -> str | None:
    number = rng.randint(10, 9999)
    street = rng.choice(STREETS)
    city, state, zip_code = rng.choice(CITIES)
    if rng.random() < 0.3:
        zip_code = f"{zip_code}-{rng.randint(1000, 9999)}"
    suite = rng.choice(["", "", f", Suite {rng.randint(1, 500)}", f" #{rng.randint(1, 50)}", f" Ste {rng.randint(1, 9)}"])
    return rng.choice([
        f"{number} {street}{suite}, {city}, {state} {zip_code}",
        f"{number} {street}{suite}, {city}, {state} {zip_code}, United States",
        f"{number} {street}, {city} {state} {zip_code}",
        f"{number} {street}",
        None,
    ])


def generate_offices(n_partner: int = 24, n_discovered: int = 8, seed: int = 7) -> List[RawOfficeRecord]:
    rng = random.Random(seed)
    offices: List[RawOfficeRecord] = []
    for _ in range(n_partner):
        offices.append(RawOfficeRecord(
            id=_rid("off"),
            name=office_name(rng),
            address=office_address(rng),
            tier=rng.choice(TIERS),
            source="partner",
        ))
    for _ in range(n_discovered):
        offices.append(RawOfficeRecord(
            id=_rid("disc"),
            name=office_name(rng),
            address=office_address(rng),
            tier=None,
            source="discovered",
        ))
    return offices
