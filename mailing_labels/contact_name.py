from __future__ import annotations
import re
from typing import Callable, List, Optional

_CAP_WORD = r"[A-Z][a-zA-Z'\-]+"
_NAME = rf"{_CAP_WORD}(?:\s+{_CAP_WORD})+"

_SEPARATED_DOCTOR_RE = re.compile(rf"[:–\-]\s*Dr\.?\s+({_NAME})")
_LEADING_DOCTOR_RE = re.compile(rf"^Dr\.?\s+({_NAME})")
_DEGREE_RE = re.compile(
    rf"({_CAP_WORD}\s+{_CAP_WORD})\s*,?\s*(?:D\.D\.S\.|D\.M\.D\.|DDS|DMD|MD|PhD)(?![A-Za-z])"
)
_BARE_NAME_RE = re.compile(rf"^{_CAP_WORD}(?:\s+{_CAP_WORD}){{1,2}}$")

# Words that mark a practice brand rather than a person.
PRACTICE_WORDS = frozenset(
    w.lower()
    for w in (
        "Dental", "Dentistry", "Dentists", "Dentist", "Family", "Smile", "Smiles",
        "Clinic", "Clinics", "Center", "Centre", "Care", "Health", "Healthcare",
        "Medical", "Orthodontics", "Orthodontic", "Endodontics", "Periodontics",
        "Pediatric", "Pediatrics", "Oral", "Surgery", "Surgical", "Implant",
        "Implants", "Associates", "Group", "Partners", "Practice", "Office",
        "Studio", "Specialists", "Specialty", "Institute", "Arts", "Cosmetic",
        "Wellness", "Vision", "Eye", "Eyecare", "Hospital", "Services", "Kids",
        "Children's", "Modern", "Premier", "Advanced", "Complete", "Gentle",
        "Sunrise", "Sunset", "Valley", "Village", "Downtown", "County", "Heights",
        "Plaza", "Avenue", "Orthodontist",
        "Chiropractic", "Therapy", "Physical", "Veterinary", "Animal", "Pet",
        "Laboratory", "Lab", "Labs", "Pharmacy", "Urgent", "Sleep", "Spa", "Prosthodontics",
    )
)

Rule = Callable[[str], Optional[str]]


def _doctor(name: str) -> str:
    return "Dr. " + " ".join(name.split())


def _separated_doctor(name: str) -> Optional[str]:
    m = _SEPARATED_DOCTOR_RE.search(name)
    return _doctor(m.group(1)) if m else None


def _leading_doctor(name: str) -> Optional[str]:
    m = _LEADING_DOCTOR_RE.match(name)
    return _doctor(m.group(1)) if m else None


def _degree_suffix(name: str) -> Optional[str]:
    m = _DEGREE_RE.search(name)
    return _doctor(m.group(1)) if m else None


def _bare_personal_name(name: str) -> Optional[str]:
    if not _BARE_NAME_RE.match(name):
        return None
    if any(word.lower() in PRACTICE_WORDS for word in name.split()):
        return None
    return _doctor(name)


RULES: List[Rule] = [
    _separated_doctor,
    _leading_doctor,
    _degree_suffix,
    _bare_personal_name,
]


def extract_contact(office_name: Optional[str]) -> str:
    """Best-guess 'Dr. First Last' contact for an office, or the office name itself."""
    if not office_name:
        return ""
    name = str(office_name).strip()
    for rule in RULES:
        contact = rule(name)
        if contact:
            return contact
    return name
