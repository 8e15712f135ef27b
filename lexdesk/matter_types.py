"""
Matter type lookup table used in case numbers (".../LIT/01/2024").
"""

from collections import OrderedDict
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional


@dataclass(frozen=True)
class MatterType:
    abbreviation: str
    full_form: str
    notes: Optional[str]
    category: str

    def to_dict(self) -> dict:
        return asdict(self)


PROPERTY = "Property & Real Estate Law"
CORPORATE = "Corporate & Commercial Law"
LITIGATION = "Litigation & Dispute Resolution"
CIVIL = "Civil & General Law"
CRIMINAL = "Criminal Law"
FAMILY = "Family Law"
IP_TECH = "Intellectual Property & Technology"
EMPLOYMENT = "Employment & Labor Law"
IMMIGRATION = "Immigration & Human Rights"
ADMINISTRATIVE = "Administrative & Constitutional Law"

_ENTRIES = [
    ("CONV", "Conveyancing", "Sale, purchase, transfer of property", PROPERTY),
    ("ELC", "Environment and Land Court", "Land disputes, environmental issues", PROPERTY),
    ("SUCC", "Succession Matters", "Wills, estates, probate involving property", PROPERTY),
    ("BRS", "Business Registration Services", "Company registration, compliance", CORPORATE),
    ("COMM", "Commercial Transactions", "Business contracts, sales, commercial dealings", CORPORATE),
    ("CORP", "Corporate Law", "Company governance, mergers, acquisitions", CORPORATE),
    ("COMP", "Company Law", "Formation and regulation of companies", CORPORATE),
    ("TAX", "Tax Law", "Tax disputes and compliance", CORPORATE),
    ("FIN", "Financial Services Law", "Banking, securities, investments", CORPORATE),
    ("REG", "Regulatory Compliance", "Compliance with industry regulations", CORPORATE),
    ("INS", "Insurance Law", "Insurance policy and claims", CORPORATE),
    ("LIT", "Litigation", "Lawsuits, court proceedings", LITIGATION),
    ("ADR", "Alternative Dispute Resolution", "Arbitration, mediation, out-of-court settlement", LITIGATION),
    ("ENF", "Enforcement Proceedings", "Execution of court judgments, debt collection", LITIGATION),
    ("CIV", "Civil Matters", "Contract disputes, torts, personal injury", CIVIL),
    ("GEN", "General Matters", "Miscellaneous, non-specific legal matters", CIVIL),
    ("CRIM", "Criminal Matters", "Criminal prosecutions, defense", CRIMINAL),
    ("FAM", "Family Law", "Divorce, custody, maintenance, adoption", FAMILY),
    ("IP", "Intellectual Property", "Patents, copyrights, trademarks", IP_TECH),
    ("ELRC", "Employment and Labour Relations Court", "Employment disputes, labor laws", EMPLOYMENT),
    ("IMM", "Immigration Law", "Visa, residency, citizenship", IMMIGRATION),
    ("HRC", "Human Rights Court/Commission", "Human rights violations, constitutional complaints", IMMIGRATION),
    ("ADMIN", "Administrative Law", "Government decisions, judicial reviews", ADMINISTRATIVE),
    ("CONST", "Constitutional Matters", "Constitutional rights and laws", ADMINISTRATIVE),
]

MATTER_TYPES: Dict[str, MatterType] = OrderedDict(
    (abbr, MatterType(abbr, full_form, notes, category))
    for abbr, full_form, notes, category in _ENTRIES
)


def get_matter_type(abbreviation: str) -> Optional[MatterType]:
    return MATTER_TYPES.get((abbreviation or "").strip().upper())


def is_valid_matter_type(abbreviation: str) -> bool:
    return get_matter_type(abbreviation) is not None


def matter_types_by_category() -> Dict[str, List[MatterType]]:
    """Group matter types by category, keeping table order."""
    grouped: Dict[str, List[MatterType]] = OrderedDict()
    for matter_type in MATTER_TYPES.values():
        grouped.setdefault(matter_type.category, []).append(matter_type)
    return grouped
