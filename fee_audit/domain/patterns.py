"""
Keyword pattern tables, compiled once at import time.

Each table is an ordered tuple of (category, compiled pattern) pairs; the
first matching entry wins where a single category is needed.
"""

import re
from typing import Optional, Pattern, Sequence, Tuple

PatternTable = Tuple[Tuple[str, Pattern[str]], ...]


def _compile(entries: Sequence[Tuple[str, str]]) -> PatternTable:
    return tuple((category, re.compile(pattern, re.IGNORECASE)) for category, pattern in entries)


def first_match(table: PatternTable, text: str) -> Optional[str]:
    """Category of the first pattern found in `text`, or None"""
    for category, pattern in table:
        if pattern.search(text):
            return category
    return None


def any_match(table: PatternTable, text: str) -> bool:
    return first_match(table, text) is not None


# Descriptions that identify a charge levied by the bank
FEE_PATTERNS = _compile([
    ("FEE", r"frais"),
    ("FEE", r"commission"),
    ("FEE", r"taxe"),
    ("FEE", r"pr[ée]l[èe]vement"),
    ("FEE", r"redevance"),
    ("FEE", r"cotisation"),
    ("FEE", r"abonnement"),
    ("FEE", r"fee"),
    ("FEE", r"charge"),
])

# Descriptions of operations that legitimately give rise to a fee
SERVICE_PATTERNS = _compile([
    ("TRANSFER", r"virement"),
    ("WITHDRAWAL", r"retrait"),
    ("DEPOSIT", r"d[ée]p[ôo]t"),
    ("CARD", r"carte"),
    ("CHECK", r"ch[èe]que"),
    ("TRANSFER", r"transfer"),
    ("PAYMENT", r"paiement"),
    ("PURCHASE", r"achat"),
    ("DIRECT_DEBIT", r"pr[ée]l[èe]vement.*(?:edf|orange|sfr|free|eau|[ée]lectricit[ée])"),
])

# Service classification for overcharge analysis, in priority order
SERVICE_TYPE_PATTERNS = _compile([
    ("ACCOUNT_MAINTENANCE", r"tenue.*compte"),
    ("ACCOUNT_MAINTENANCE", r"frais.*compte"),
    ("ACCOUNT_MAINTENANCE", r"gestion.*compte"),
    ("TRANSFER_NATIONAL", r"virement.*\bnational"),
    ("TRANSFER_NATIONAL", r"\bvir\b"),
    ("TRANSFER_NATIONAL", r"transfer.*local"),
    ("TRANSFER_INTERNATIONAL", r"virement.*international"),
    ("TRANSFER_INTERNATIONAL", r"swift"),
    ("TRANSFER_INTERNATIONAL", r"transfer.*[ée]tranger"),
    ("CARD_FEE", r"carte"),
    ("CARD_FEE", r"card"),
    ("CARD_FEE", r"visa"),
    ("CARD_FEE", r"mastercard"),
    ("ATM", r"retrait.*dab"),
    ("ATM", r"retrait.*gab"),
    ("ATM", r"\batm\b"),
    ("ATM", r"distributeur"),
    ("OVERDRAFT", r"agios"),
    ("OVERDRAFT", r"d[ée]couvert"),
    ("OVERDRAFT", r"int[ée]r[êe]ts.*d[ée]biteurs"),
    ("SMS", r"sms"),
    ("SMS", r"notification"),
    ("SMS", r"alerte"),
    ("STATEMENT", r"relev[ée]"),
    ("STATEMENT", r"extrait"),
    ("STATEMENT", r"statement"),
])

OTHER_SERVICE = "OTHER"

SERVICE_TYPE_LABELS = {
    "ACCOUNT_MAINTENANCE": "Account maintenance",
    "TRANSFER_NATIONAL": "National transfer",
    "TRANSFER_INTERNATIONAL": "International transfer",
    "CARD_FEE": "Card fee",
    "ATM": "ATM withdrawal",
    "OVERDRAFT": "Overdraft interest",
    "SMS": "SMS notification",
    "STATEMENT": "Account statement",
    OTHER_SERVICE: "Other",
}

# Fee-schedule code/name fragments per service type
SERVICE_FEE_CODES = {
    "ACCOUNT_MAINTENANCE": ("TDC", "TENUE", "COMPTE"),
    "TRANSFER_NATIONAL": ("VIR", "VIRN", "TRANSFER"),
    "TRANSFER_INTERNATIONAL": ("VIRI", "SWIFT", "TRANSFERI"),
    "CARD_FEE": ("CARTE", "CARD", "CB"),
    "ATM": ("RET", "DAB", "GAB", "ATM"),
    "SMS": ("SMS", "NOTIF"),
    "STATEMENT": ("REL", "EXTRAIT", "STATEMENT"),
}

INTEREST_PATTERNS = _compile([
    ("INTEREST", r"int[ée]r[êe]t"),
    ("INTEREST", r"agios"),
    ("INTEREST", r"d[ée]couvert"),
    ("INTEREST", r"debit.*interest"),
])

# Weighted wording that makes a fee description vague
VAGUE_FEE_PATTERNS: Tuple[Tuple[float, Pattern[str]], ...] = tuple(
    (weight, re.compile(pattern, re.IGNORECASE))
    for weight, pattern in [
        (0.25, r"frais\s+divers"),
        (0.25, r"commission\s+diverse"),
        (0.2, r"autres?\s+frais"),
        (0.15, r"pr[ée]l[èe]vement\s+auto"),
        (0.15, r"frais\s+de\s+gestion"),
        (0.3, r"^frais\s*$"),
        (0.3, r"^commission\s*$"),
    ]
)

COMMON_WORDS = frozenset({
    "de", "la", "le", "du", "des", "et", "en", "un", "une", "pour", "sur",
    "par", "avec", "au", "aux", "frais", "compte", "virement", "paiement",
    "carte", "retrait",
})

# Words that carry no meaning when relating a fee to its service
KEYWORD_STOPWORDS = frozenset({"frais", "commission", "pour", "avec", "dans", "sur"})

ROUND_AMOUNT_STEPS = (100, 500, 1000, 2500, 5000, 10000, 25000, 50000)
