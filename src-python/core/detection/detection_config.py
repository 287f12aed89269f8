"""Detection vocabulary — keyword lists and stoplists used by the PII rules.

Everything locale-specific lives here as data so it can be tuned (or
replaced wholesale) without touching the rule code.  The default
vocabulary targets statements from India, Canada, the US and the UK.

Pass a customised :class:`DetectionVocabulary` to
``detect_line`` / ``detect_page`` to override any list; the defaults
are never mutated.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


def _words(text: str) -> list[str]:
    return [w for w in text.split() if w]


class DetectionVocabulary(BaseModel):
    """Keyword lists that drive the per-line gates and rules."""

    # Labels whose value (``Label: value``) is always redacted.
    value_labels: list[str] = Field(default_factory=lambda: [
        "name", "customer name", "account holder", "account holder name",
        "account name", "holder name", "card holder", "cardholder",
        "account number", "account no", "account no.", "a/c no", "a/c no.",
        "a/c number", "acct no", "acct number", "account #", "acct #",
        "card number", "card no", "card no.", "credit card number",
        "customer id", "customer no", "client id", "client number",
        "cif", "cif no", "cif number", "crn", "member id", "member number",
        "email", "e-mail", "email id", "email address",
        "phone", "phone no", "mobile", "mobile no", "mobile number",
        "tel", "telephone", "contact no", "contact number",
        "address", "mailing address", "registered address",
        "date of birth", "dob", "d.o.b",
        "pan", "pan no", "ssn", "sin", "aadhaar", "aadhaar no",
        "nominee", "transit number", "routing number",
    ])

    # Tokens that, anywhere in a line, open card/account detection outside
    # the top region.
    card_account_labels: list[str] = Field(default_factory=lambda: [
        "card", "card no", "card number", "account", "a/c", "acct",
        "account no", "account number", "iban", "ending in", "ends in",
    ])

    national_id_labels: list[str] = Field(default_factory=lambda: [
        "ssn", "social security", "sin", "social insurance",
        "pan", "permanent account number", "aadhaar", "aadhar", "uid",
        "tax id", "tin", "ein", "itin",
        "national insurance", "ni number", "nino",
    ])

    email_labels: list[str] = Field(default_factory=lambda: [
        "email", "e-mail", "email id", "email address", "mail id",
    ])

    phone_labels: list[str] = Field(default_factory=lambda: [
        "phone", "tel", "telephone", "mobile", "mob", "cell",
        "contact", "fax", "ph",
    ])

    dob_labels: list[str] = Field(default_factory=lambda: [
        "date of birth", "dob", "d.o.b", "birth date", "born on",
    ])

    # Column headers of a transaction table.
    table_header_tokens: list[str] = Field(default_factory=lambda: [
        "date", "txn date", "value date", "description", "narration",
        "particulars", "details", "debit", "credit", "withdrawal",
        "withdrawals", "deposit", "deposits", "balance", "amount",
        "chq", "cheque no", "ref no", "reference",
    ])

    # Keywords typical of transaction descriptions.
    transaction_keywords: list[str] = Field(default_factory=lambda: [
        "upi", "neft", "imps", "rtgs", "ach", "atm", "pos", "nach",
        "ecs", "wdl", "tfr", "trf", "transfer", "payment", "purchase",
        "emi", "interac", "e-transfer", "etransfer", "withdrawal",
        "deposit", "refund", "reversal", "charges", "fee", "interest",
        "dr", "cr", "bill pay", "debit card", "salary",
    ])

    # Lines containing these are bank letterhead / boilerplate, not the
    # customer's address block.
    bank_header_tokens: list[str] = Field(default_factory=lambda: [
        "bank", "branch", "ifsc", "micr", "swift", "statement",
        "page", "www.", "http", ".com", "customer care", "toll free",
        "helpline", "credit union", "limited", "ltd", "n.a.", "gstin",
    ])

    # Capitalised words that must never be treated as part of a name.
    name_stoplist: list[str] = Field(default_factory=lambda: _words("""
        Account Accounts Statement Statements Bank Banking Branch Card Cards
        Credit Debit Visa Mastercard Master Amex American Express Rupay
        Platinum Gold Silver Classic Signature Infinite World Rewards Reward
        Savings Saving Current Checking Chequing Deposit Deposits Balance
        Opening Closing Available Total Amount Payment Payments Due Minimum
        Limit Date Period From To Summary Transaction Transactions Details
        Number No Customer Holder Primary Secondary Name Member Since
        Interest Rate Fees Fee Charges Annual Cash Advance Purchases
        Previous New Ending Ends In Of The And For With Your Our
        Page Valid Thru Through Month Year Ltd Limited Inc Corp
    """))

    street_tokens: list[str] = Field(default_factory=lambda: [
        "street", "st", "road", "rd", "avenue", "ave", "boulevard", "blvd",
        "lane", "ln", "drive", "dr", "court", "ct", "crescent", "cres",
        "place", "pl", "way", "highway", "hwy", "terrace", "circle",
        "apt", "apartment", "unit", "suite", "ste", "floor", "flat",
        "house", "building", "bldg", "tower", "block", "plot", "sector",
        "nagar", "colony", "marg", "chowk", "layout", "cross", "main",
        "near", "opp", "behind", "village", "taluk", "district", "dist",
    ])

    region_names: list[str] = Field(default_factory=lambda: [
        # Canada
        "ontario", "quebec", "british columbia", "alberta", "manitoba",
        "saskatchewan", "nova scotia", "new brunswick",
        "newfoundland", "prince edward island", "yukon", "nunavut",
        "northwest territories",
        # United States (subset that rarely collides with common words)
        "california", "texas", "florida", "new york", "new jersey",
        "illinois", "pennsylvania", "ohio", "georgia", "michigan",
        "washington", "arizona", "massachusetts", "virginia",
        "north carolina", "colorado", "minnesota", "wisconsin",
        # India
        "maharashtra", "karnataka", "tamil nadu", "kerala", "gujarat",
        "rajasthan", "uttar pradesh", "madhya pradesh", "west bengal",
        "telangana", "andhra pradesh", "punjab", "haryana", "bihar",
        "odisha", "delhi", "goa", "assam", "jharkhand", "uttarakhand",
    ])

    # Upper-case abbreviations, matched case-sensitively as whole words.
    region_abbreviations: list[str] = Field(default_factory=lambda: [
        "ON", "QC", "BC", "AB", "MB", "SK", "NS", "NB", "NL", "PE", "YT", "NU", "NT",
        "CA", "TX", "FL", "NY", "NJ", "IL", "PA", "GA", "MI", "WA", "AZ",
        "MA", "VA", "NC", "CO", "MN", "WI",
        "MH", "KA", "TN", "KL", "GJ", "RJ", "UP", "MP", "WB", "TS", "AP",
    ])

    country_names: list[str] = Field(default_factory=lambda: [
        "india", "canada", "united states", "usa", "u.s.a", "united kingdom",
        "uk", "australia", "singapore", "united arab emirates", "uae",
    ])


DEFAULT_VOCABULARY = DetectionVocabulary()
