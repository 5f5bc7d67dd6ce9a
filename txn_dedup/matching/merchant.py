"""Merchant name extraction from noisy bank descriptions.

The same purchase shows up as "AplPay BURRITO BARN 1249RIVERDALE XX" on a
card statement and as "Burrito Barn" in the aggregation feed. Stripping
payment-rail prefixes, boilerplate suffixes, locations and reference
numbers brings both down to a comparable merchant name.

Abbreviations are left alone (AWS stays AWS); resolving those is the
verifier's job.
"""

from __future__ import annotations

import re

# Tried once each, in order, so longer variants precede their stems.
PREFIXES: tuple[str, ...] = (
    # Mobile wallets
    "APPLE PAY", "APPLEPAY", "APLPAY", "APL*PAY",
    # POS aggregators
    "SQUARE *", "SQ *", "SQ*", "GOSQ.COM",
    "TST *", "TST*", "TOAST*",
    "SP ", "SP*", "STRIPE*", "SHOPIFY*",
    "PAYPAL *", "PAYPAL*", "PP*", "VENMO *", "VENMO*",
    # Transaction-type words
    "POS PURCHASE", "POS DEBIT", "POS", "PURCHASE",
    "DEBIT CARD", "DEBIT", "CHECKCARD", "CHECK CARD",
    "ACH DEBIT", "ACH CREDIT", "ACH",
    "ELECTRONIC", "RECURRING",
    "AUTOPAY PAYMENT", "AUTOPAY", "AUTO PAY", "BILL PAY",
    "ONLINE", "INTERNET", "MOBILE PAYMENT", "MOBILE", "CONTACTLESS",
    "PAYMENT",
    # Marketplaces and delivery / rideshare aggregators
    "AMZN*", "AMZ*", "AMAZON*",
    "GOOGLE *", "GOOGLE*", "GOOG*",
    "UBER *", "UBER*", "LYFT *", "LYFT*",
    "DD *", "DOORDASH*", "GRUBHUB*", "GH*", "INSTACART*",
    "CKE*", "CHK*",
    # URL schemes
    "HTTPS://", "HTTP://", "WWW.",
    # Processor tags
    "BT*", "FH*", "CL*", "CS *", "DNH*", "WWP*",
    "INTL", "FOREIGN",
    # Card-issuer credits
    "AMEX RESY CREDIT", "AMEX DINING CREDIT", "MEM RWDS", "GLOBALREWARDS",
)

SUFFIXES: tuple[str, ...] = (
    "- THANK YOU", "THANK YOU", "PAYMENT RECEIVED", "APPROVED",
    "PAYROLL", "DIRECT DEPOSIT", "DIRECT DEP", "DIR DEP",
    "PPD", "WEB", "TEL", "CCD",
    "MASTERCARD", "VISA", "MC", "AMEX", "DISCOVER",
    "INC.", "INC", "LLC.", "LLC", "CORP.", "CORP", "CO.", "CO", "LTD.", "LTD",
)

US_STATES: frozenset[str] = frozenset({
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC",
})

STOPWORDS: frozenset[str] = frozenset({
    "the", "a", "an", "of", "and", "or", "in", "at", "to", "for", "on", "by",
})

MAX_WORDS = 4

# Optional city token followed by a state abbreviation at the very end.
_LOCATION_RE = re.compile(
    r"\s+(?:[A-Z]+\s+)?(?:" + "|".join(sorted(US_STATES)) + r")\s*$"
)

_TRAILING_NOISE: tuple[re.Pattern[str], ...] = (
    re.compile(r"\s+\d{3,}.*$"),                      # store numbers and all after
    re.compile(r"\s+#?\d+\s*$"),                      # #1234 style codes
    re.compile(r"\s+\d{4,}$"),
    re.compile(r"\s+\d{5}(?:-\d{4})?\s*$"),           # ZIP
    re.compile(r"\s+\(\d{3}\)\s*\d{3}-\d{4}\s*$"),    # (555) 123-4567
    re.compile(r"\s+\d{3}-\d{3}-\d{4}\s*$"),          # 555-123-4567
    re.compile(r"\s+[A-Z]{2,3}\d{5,}\s*$"),           # reference ids
    re.compile(r"\s+ID:\s*\S+\s*$"),
    re.compile(r"\s+\S+\.(?:COM|NET|ORG|IO|CO)\S*\s*$"),  # website
    re.compile(r"\s+-\d+\s*$"),                       # account number
)

_DECORATORS_RE = re.compile(r"[*#/]+")
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[-,.:;]+$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def _strip_prefix(text: str, prefix: str) -> str:
    if not text.startswith(prefix):
        return text
    rest = text[len(prefix):]
    # "POS" must not eat the front of "POSTMATES"
    if prefix[-1].isalnum() and rest[:1].isalnum():
        return text
    return rest.strip() or text


def _strip_suffix(text: str, suffix: str) -> str:
    if not text.endswith(suffix):
        return text
    rest = text[: -len(suffix)]
    if suffix[0].isalnum() and (not rest or rest[-1].isalnum()):
        return text
    return rest.rstrip() or text


def extract_merchant_name(raw: str | None) -> str:
    """Reduce a raw description to an upper-cased merchant name.

    Never raises; empty input gives an empty string. The result has at
    most four words and no trailing punctuation.
    """
    if not raw:
        return ""

    clean = raw.upper().strip()

    for prefix in PREFIXES:
        clean = _strip_prefix(clean, prefix)

    for suffix in SUFFIXES:
        clean = _strip_suffix(clean, suffix)

    clean = _LOCATION_RE.sub("", clean)

    for pattern in _TRAILING_NOISE:
        clean = pattern.sub("", clean)

    clean = _DECORATORS_RE.sub(" ", clean)
    clean = _WHITESPACE_RE.sub(" ", clean).strip()

    words = clean.split(" ")
    if len(words) > MAX_WORDS:
        clean = " ".join(words[:MAX_WORDS])

    return _TRAILING_PUNCT_RE.sub("", clean).strip()


def extract_merchant_tokens(description: str | None) -> list[str]:
    """Return lower-cased significant tokens of the merchant name.

    Stopwords and tokens shorter than three characters are dropped,
    and non-alphanumeric characters are removed from each token.
    """
    name = extract_merchant_name(description).lower()
    tokens: list[str] = []
    for word in name.split():
        if len(word) < 3 or word in STOPWORDS:
            continue
        word = _NON_ALNUM_RE.sub("", word)
        if len(word) >= 3:
            tokens.append(word)
    return tokens
