from __future__ import annotations

from pathlib import Path

import phonenumbers
import vobject
from phonenumbers import NumberParseException

from .model import Card


def format_phone(raw: str, default_region: str = "GB") -> str:
    """International format (e.g. +44 7980 220 220) when the number parses, else unchanged."""
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except NumberParseException:
        return raw
    if not phonenumbers.is_valid_number(parsed):
        return raw
    intl = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL)
    out = " ".join(intl.replace("-", " ").replace("(", "").replace(")", "").split())

    # GB mobile tweak: +44 7xxx xxx xxx
    nsn = phonenumbers.national_significant_number(parsed)
    if phonenumbers.region_code_for_number(parsed) == "GB" and len(nsn) == 10 and nsn.startswith("7"):
        return f"+44 {nsn[0:4]} {nsn[4:7]} {nsn[7:]}"
    return out


def _split_name(name: str) -> tuple[str, str]:
    # "Jane Q Doe" -> family "Doe", given "Jane Q"
    parts = name.split()
    if not parts:
        return "", ""
    return parts[-1], " ".join(parts[:-1])


def card_to_vcard(card: Card, default_region: str = "GB") -> vobject.base.Component:
    v = vobject.vCard()
    v.add("version").value = "3.0"
    name = (card.name or "").strip() or card.company or "Unnamed"
    family, given = _split_name(name)
    v.add("n").value = vobject.vcard.Name(family=family, given=given)
    v.add("fn").value = name
    if card.company:
        v.add("org").value = [card.company]
    if card.position:
        v.add("title").value = card.position
    if card.phone:
        it = v.add("tel"); it.value = format_phone(card.phone, default_region)
        it.type_paramlist = ["WORK", "VOICE"]
    if card.mobile:
        it = v.add("tel"); it.value = format_phone(card.mobile, default_region)
        it.type_paramlist = ["CELL", "VOICE"]
    if card.email:
        it = v.add("email"); it.value = card.email.strip()
        it.type_paramlist = ["WORK", "INTERNET"]
    if card.website:
        it = v.add("url"); it.value = card.website
        it.type_param = "WORK"
    if card.linkedin_url:
        it = v.add("url"); it.value = card.linkedin_url
        it.type_param = "SOCIAL"
    if card.address:
        it = v.add("adr"); it.value = vobject.vcard.Address(street=card.address)
        it.type_param = "WORK"
    return v


def export_vcard(card: Card, default_region: str = "GB") -> str:
    """vCard 3.0 text for one card, as shared via QR code or file."""
    return card_to_vcard(card, default_region).serialize()


def export_vcards(cards: list[Card], path: Path, default_region: str = "GB") -> int:
    # stable order: by name, then company
    cards_sorted = sorted(cards, key=lambda c: ((c.name or "").lower(), (c.company or "").lower()))
    text = "".join(export_vcard(c, default_region) for c in cards_sorted)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return len(cards_sorted)
