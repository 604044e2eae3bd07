"""Keyword tables driving report verification, action lists and summaries.

Pure data: edit these tables to tune behaviour without touching the
verification or scoring code.
"""
from __future__ import annotations

import re

PRESENCE_TERMS: dict[str, tuple[str, ...]] = {
    "impressum": (
        "impressum", "imprint", "legal notice", "colofon", "legal info",
        "angaben gemäß", "verantwortlich", "betreiber", "herausgeber",
        "inhaltlich verantwortlich", "seitenbetreiber", "anbieterkennzeichnung",
        "company information", "site notice", "legal disclosure", "publisher",
        "responsible for content", "gemäß § 5 tmg", "§ 5 telemediengesetz",
        "handelsregister", "registergericht", "ust-id", "ust-idnr", "vat id",
        "geschäftsführer", "managing director", "ceo", "inhaber", "owner",
    ),
    "privacy": (
        "datenschutz", "privacy", "privacybeleid", "data protection", "gdpr", "dsgvo",
        "privacyverklaring", "gegevensbescherming", "datenschutzerklärung",
        "privacy policy", "privacy statement", "personenbezogene daten",
        "verarbeitung ihrer daten", "cookies", "tracking", "google analytics",
        "data we collect", "how we use your data", "your privacy rights",
        "art. 13 dsgvo", "artikel 13", "verantwortlicher", "data controller",
        "datenschutzbeauftragter", "data protection officer", "dpo",
        "rechtsgrundlage", "legal basis", "berechtigtes interesse", "legitimate interest",
    ),
    "terms": (
        "agb", "terms", "conditions", "algemene voorwaarden", "nutzungsbedingungen",
        "terms of service", "terms of use", "terms and conditions", "tos",
        "allgemeine geschäftsbedingungen", "vertragsbestimmungen", "kaufbedingungen",
        "user agreement", "service agreement", "acceptable use", "terms apply",
        "by using this", "geltungsbereich", "vertragsschluss", "lieferung",
    ),
    "withdrawal": (
        "widerruf", "withdrawal", "return", "refund", "retour", "rückgabe",
        "14 tage", "14 days", "widerrufsrecht", "widerrufsbelehrung",
        "right of withdrawal", "cancellation right", "herroeping", "herroepingsrecht",
        "rückgaberecht", "umtausch", "exchange", "money back", "geld zurück",
        "widerrufsfrist", "cooling off", "retourbeleid", "return policy",
    ),
    "contact": (
        "kontakt", "contact", "kontaktieren", "contact us", "get in touch",
        "neem contact op", "erreichen sie uns", "schreiben sie uns",
        "e-mail", "email", "telefon", "phone", "tel:", "fax", "@",
        "anschrift", "address", "adresse", "postadresse", "standort",
    ),
    "shipping": (
        "versand", "shipping", "delivery", "lieferung", "verzending",
        "versandkosten", "shipping costs", "lieferzeit", "delivery time",
        "bezorging", "versandarten", "shipping methods", "dhl", "ups", "dpd",
        "kostenloser versand", "free shipping", "gratis verzending",
    ),
    "payment": (
        "zahlung", "payment", "bezahlung", "betaling", "zahlungsarten",
        "payment methods", "kreditkarte", "credit card", "paypal", "klarna",
        "sofort", "überweisung", "bank transfer", "rechnung", "invoice",
        "vorkasse", "prepayment", "zahlungsbedingungen", "payment terms",
    ),
    "cookie": (
        "cookie", "cookies", "cookie policy", "cookie-richtlinie", "cookiebeleid",
        "we use cookies", "wir verwenden cookies", "cookie consent", "cookie banner",
        "essential cookies", "notwendige cookies", "tracking cookies", "analytics",
    ),
}

# Findings mentioning any of these are never filtered, positive or negative.
TRANSLATION_TERMS: tuple[str, ...] = (
    "machine translation", "google translate", "gtranslate", "weglot",
    "translation quality", "translated by", "maschinenübersetzung", "auto-translate",
    "language switcher", "no language subfolders", "translation widget", "human translation",
    "proper localization", "native speaker", "translation analysis",
)

MISSING_INDICATORS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"missing", r"not found", r"\bkeine?\b", r"\bfehlt\b", r"\bfehlen", r"\babsent\b", r"\bno\b",
        r"could not find", r"couldn't find", r"does not have", r"doesn't have", r"\blacks?\b",
        r"\blacking\b", r"\bwithout\b", r"nicht vorhanden", r"not present", r"unavailable",
        r"nicht gefunden", r"ontbreekt", r"\bgeen\b", r"niet aanwezig",
    )
)

# Items nearly every business has; with a thin crawl a "missing" claim is not trusted.
COMMON_ITEMS: tuple[str, ...] = (
    "impressum", "imprint", "privacy", "datenschutz", "terms", "agb", "contact", "kontakt", "cookie",
)
MIN_PAGES_FOR_MISSING_CLAIMS = 3

IMPRESSUM_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bgmbh\b", r"\bkg\b", r"\bag\b", r"\bltd\b", r"\bllc\b", r"\bsrl\b", r"\bbv\b",
        r"geschäftsführer", r"managing director", r"\bceo\b",
        r"handelsregister", r"hrb\s*\d+", r"commercial register",
        r"ust-id", r"\bvat\b", r"\bbtw\b", r"ust\.?\s*id",
        r"\d{5}\s+[a-zäöü]+",
        r"\+49|\+31|\+32|\+43",
    )
)

# (topic, keywords, action) in report order.
ACTION_TOPICS: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("machine_translation", ("machine translation", "google translate"),
     "Hire professional translator for the German market"),
    ("privacy", ("privacy", "datenschutz", "gdpr", "dsgvo"),
     "Update privacy policy to comply with GDPR"),
    ("impressum", ("impressum", "imprint", "legal notice"),
     "Add required legal information to Impressum"),
    ("withdrawal", ("withdrawal", "widerruf", "return policy"),
     "Add clear 14-day withdrawal notice to checkout"),
    ("cookie", ("cookie", "consent"),
     "Implement GDPR-compliant cookie consent banner"),
    ("contact", ("contact", "kontakt", "email", "phone"),
     "Add business contact details to website"),
    ("terms", ("terms", "agb", "conditions"),
     "Review and update Terms and Conditions"),
)
NO_ISSUES_ACTION = "No critical issues found - maintain current compliance standards"

OVERVIEW_TOPICS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("machine translation", "google translate"), "machine translation detected"),
    (("privacy", "datenschutz"), "privacy policy concerns"),
    (("impressum", "imprint"), "Impressum issues"),
    (("withdrawal", "widerruf"), "withdrawal policy concerns"),
    (("cookie",), "cookie consent issues"),
)

SEVERITY_PENALTIES: dict[str, int] = {"high": 25, "medium": 10, "low": 4, "info": 0}
SCORE_FLOOR = 5
FALLBACK_SCORE = 50
