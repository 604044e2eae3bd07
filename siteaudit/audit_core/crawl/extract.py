"""Heuristics run over crawled pages: page typing, contact hints, translation structure."""
from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from siteaudit.audit_core.models.interfaces import (
    CompanyHints,
    ContactInfo,
    Page,
    PageType,
    RawPage,
    TranslationSignals,
)

LEGAL_TERMS = (
    "impressum", "imprint", "legal-notice", "agb", "terms", "privacy", "gdpr", "dsgvo",
    "colofon", "datenschutz", "widerruf", "withdrawal", "disclaimer", "algemene-voorwaarden",
    "privacybeleid", "privacyverklaring",
)
CONTACT_TERMS = (
    "kontakt", "contact", "about", "uber-uns", "ueber-uns", "over-ons", "unternehmen",
    "company", "team", "who-we-are", "wie-zijn-wij",
)

EMAIL_RE = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
PHONE_RE = re.compile(r"(?:\+49|0049|\+31|\+32|\+43|0)[\s\d\-/]{8,}")
VAT_RE = re.compile(
    r"(?:USt-?Id(?:Nr)?|UID|VAT|BTW(?:-?nummer)?|BTW-id)[:\s.]*([A-Z]{2}\s?\d{9,11}[A-Z]?\d?)",
    re.IGNORECASE,
)
REGISTRATION_RE = re.compile(
    r"(?:HRB?|Handelsregister|KvK(?:-nummer)?|Kamer van Koophandel|Rechtbank|Ondernemingsnummer)[:\s]*(\d{4,10})",
    re.IGNORECASE,
)
ADDRESS_RE = re.compile(
    r"(\d{4,5}\s*[A-Z]{0,2}\s+[A-Za-zäöüßÄÖÜ\s-]+(?:straße|strasse|str\.|weg|platz|laan|straat|singel|gracht)?[^,\n]{0,50})",
    re.IGNORECASE,
)
COMPANY_RE = re.compile(
    r"([A-Za-zäöüßÄÖÜ&. -]+?(?:GmbH|AG|UG|KG|OHG|eG|BV|NV|VOF|CV|Ltd\.?|Inc\.?|LLC|Holding))\b"
)

LANGUAGE_FOLDER_RE = re.compile(
    r"/(?:de|en|nl|fr|es|it|pl|at|ch|de-de|en-gb|en-us|de-at|de-ch|nl-nl|nl-be)(?:/|$)"
)
WIDGET_SIGNATURES = (
    "gtranslate", "goog-te-combo", "google_translate_element", "goog-te-menu-frame",
    "translate.google", "wp-google-translate", "weglot", "translated by google",
    "google translate",
)
SWITCHER_MARKERS = ("language switcher", "select language", "sprache wählen", "kies taal")


def classify_page(url: str, title: str = "") -> PageType:
    haystack = f"{url} {title}".lower()
    if any(term in haystack for term in LEGAL_TERMS):
        return "legal"
    if any(term in haystack for term in CONTACT_TERMS):
        return "contact"
    return "general"


def normalize_url(url: str) -> str:
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    path = parsed.path.rstrip("/")
    query = f"?{parsed.query}" if parsed.query else ""
    return f"{host}{path}{query}"


def extract_contact_and_company(pages: Iterable[Page]) -> tuple[ContactInfo, CompanyHints]:
    """First match across all pages wins for every field."""
    contact = ContactInfo()
    company = CompanyHints()
    for page in pages:
        content = page.content
        if contact.email is None and (m := EMAIL_RE.search(content)):
            contact.email = m.group(0)
        if contact.phone is None and (m := PHONE_RE.search(content)):
            contact.phone = m.group(0).strip()
        if contact.address is None and (m := ADDRESS_RE.search(content)):
            contact.address = m.group(1).strip()
        if company.vat_id is None and (m := VAT_RE.search(content)):
            company.vat_id = re.sub(r"\s", "", m.group(1))
        if company.registration_number is None and (m := REGISTRATION_RE.search(content)):
            company.registration_number = m.group(1)
        if company.name is None and (m := COMPANY_RE.search(content)):
            company.name = m.group(1).strip(" .-")
    return contact, company


def _html_signals(html: str) -> tuple[str | None, list[str], bool]:
    if not html:
        return None, [], False
    soup = BeautifulSoup(html, "html.parser")
    root = soup.find("html")
    lang = root.get("lang") if root is not None else None

    lowered = html.lower()
    found = [sig for sig in WIDGET_SIGNATURES if sig in lowered]
    for script in soup.find_all("script", src=True):
        src = str(script["src"]).lower()
        for sig in WIDGET_SIGNATURES:
            if sig in src and sig not in found:
                found.append(sig)

    switcher = False
    for element in soup.find_all(attrs={"class": True}):
        classes = " ".join(element.get("class") or []).lower()
        if "lang" in classes and "switch" in classes:
            switcher = True
            break
    if not switcher:
        switcher = soup.find(id=re.compile("language", re.IGNORECASE)) is not None
    return (str(lang) if lang else None), found, switcher


def analyze_translation_structure(
    pages: list[Page],
    raw_pages: list[RawPage],
    site_urls: Iterable[str] = (),
    home_url: str = "",
) -> TranslationSignals:
    urls = [page.url.lower() for page in pages] + [u.lower() for u in site_urls]
    corpus = " ".join(page.content for page in pages).lower()

    home = _pick_home_page(raw_pages, home_url)
    html_lang, html_widgets, html_switcher = _html_signals(home.html if home else "")

    has_folders = any(LANGUAGE_FOLDER_RE.search(urlparse(u).path or "/") for u in urls)
    widgets = list(dict.fromkeys([sig for sig in WIDGET_SIGNATURES if sig in corpus] + html_widgets))
    has_widget = bool(widgets)
    has_switcher = html_switcher or any(marker in corpus for marker in SWITCHER_MARKERS)

    if has_widget:
        analysis = "DETECTED: Translation widget (likely Google Translate or similar). Site may use machine translation."
    elif has_switcher and not has_folders:
        analysis = (
            "WARNING: Language switcher found but no language-specific URLs (/de/, /en/). "
            "Possibly using client-side translation."
        )
    elif has_folders:
        analysis = "GOOD: Proper language subfolders detected. Site appears to have professional localization."
    else:
        analysis = "UNKNOWN: No language structure detected. Single-language site or unable to determine."

    return TranslationSignals(
        has_proper_localization=has_folders,
        suspected_machine_translation=has_widget or (has_switcher and not has_folders),
        has_language_switcher=has_switcher,
        has_translation_widget=has_widget,
        html_lang=html_lang,
        widget_signatures=widgets,
        analysis=analysis,
    )


def _pick_home_page(raw_pages: list[RawPage], home_url: str) -> RawPage | None:
    target = normalize_url(home_url) if home_url else ""
    for page in raw_pages:
        if page.html and normalize_url(page.url) == target:
            return page
    return next((page for page in raw_pages if page.html), None)
