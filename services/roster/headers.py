"""
Header mapping for uploaded client files.

Consultants export their rosters from different tools, so column headers
arrive in many Turkish and English spellings. Each header is normalised
(lowercase, no diacritics, no dotless i, no separators) and looked up in
the synonym table for the upload's track kind.
"""

import re
import unicodedata
from typing import Dict, List, Optional

from .exceptions import StructuralImportError
from .types import TrackKind

IGNORE = 'ignore'

SAVINGS_HEADER_SYNONYMS = {
    'name': 'name',
    'isim': 'name',
    'ad': 'name',
    'adsoyad': 'name',
    'advesoyad': 'name',
    'adivesoyadi': 'name',
    'musteriadsoyad': 'name',
    'soyisim': 'name',
    'email': 'email',
    'mail': 'email',
    'eposta': 'email',
    'epostaadres': 'email',
    'epostaadresi': 'email',
    'telefon': 'phone',
    'phone': 'phone',
    'tel': 'phone',
    'gsm': 'phone',
    'dogumtarihi': 'birth_date',
    'dogumgunu': 'birth_date',
    'birthdate': 'birth_date',
    'birthday': 'birth_date',
    'tarih': 'birth_date',
    'firstsavings': 'first_savings',
    'ilktasarruf': 'first_savings',
    'ilktasarruftutari': 'first_savings',
    'ilkbirikim': 'first_savings',
    'currentsavings': 'current_savings',
    'gunceltasarruf': 'current_savings',
    'gunceltasarruftutari': 'current_savings',
    'mevcuttasarruf': 'current_savings',
    'mevcutsaving': 'current_savings',
    'aktarimtarihi': IGNORE,
    'aktarim': IGNORE,
    'aktarimtar': IGNORE,
    'aktarimtarih': IGNORE,
    'aylikodeme': IGNORE,
    'aylikodemesi': IGNORE,
    'aylikodemetutari': IGNORE,
    'odemetutari': IGNORE,
    'tutar': IGNORE,
}

POLICY_HEADER_SYNONYMS = {
    'name': 'name',
    'isim': 'name',
    'kisi': 'name',
    'musteri': 'name',
    'adsoyad': 'name',
    'adivesoyadi': 'name',
    'email': 'email',
    'mail': 'email',
    'eposta': 'email',
    'epostaadres': 'email',
    'epostaadresi': 'email',
    'telefon': 'phone',
    'phone': 'phone',
    'tel': 'phone',
    'gsm': 'phone',
    'policeturu': 'policy_type',
    'policetur': 'policy_type',
    'policetip': 'policy_type',
    'policedurumu': 'policy_type',
    'sigortaturu': 'policy_type',
    'policestart': 'policy_start_date',
    'policestartdate': 'policy_start_date',
    'policebaslangic': 'policy_start_date',
    'policebaslangictarihi': 'policy_start_date',
    'baslangictarihi': 'policy_start_date',
    'baslangic': 'policy_start_date',
    'policend': 'policy_end_date',
    'policeend': 'policy_end_date',
    'policebitis': 'policy_end_date',
    'policebitistarihi': 'policy_end_date',
    'bitistarihi': 'policy_end_date',
    'bitis': 'policy_end_date',
    'policeno': IGNORE,
    'policenot': IGNORE,
    'policenumarasi': IGNORE,
    'policenumber': IGNORE,
    'policekapsami': IGNORE,
    'kapsam': IGNORE,
}

HEADER_SYNONYMS = {
    TrackKind.SAVINGS: SAVINGS_HEADER_SYNONYMS,
    TrackKind.POLICY: POLICY_HEADER_SYNONYMS,
}

# Required columns in the order they are reported when missing
REQUIRED_FIELDS = {
    TrackKind.SAVINGS: ('name', 'email', 'first_savings', 'current_savings'),
    TrackKind.POLICY: ('name', 'email', 'policy_type', 'policy_start_date', 'policy_end_date'),
}

FIELD_LABELS = {
    TrackKind.SAVINGS: {
        'name': 'Ad Soyad',
        'email': 'E-posta',
        'first_savings': 'İlk Tasarruf',
        'current_savings': 'Güncel Tasarruf',
    },
    TrackKind.POLICY: {
        'name': 'Kişi',
        'email': 'E-posta',
        'policy_type': 'Poliçe Türü',
        'policy_start_date': 'Poliçe Başlangıç Tarihi',
        'policy_end_date': 'Poliçe Bitiş Tarihi',
    },
}

_SEPARATORS = re.compile(r'[\s\-_.]+')


def normalise_header(raw: str) -> str:
    """Reduce a header (or any cell) to the key used by the synonym tables."""
    value = raw.strip().lower()
    value = unicodedata.normalize('NFD', value)
    value = ''.join(ch for ch in value if not unicodedata.combining(ch))
    value = value.replace('ı', 'i')
    return _SEPARATORS.sub('', value)


def map_header(raw: str, kind: TrackKind) -> Optional[str]:
    """Canonical field for one header cell, IGNORE, or None when unknown."""
    return HEADER_SYNONYMS[kind].get(normalise_header(raw))


def map_header_positions(header_cells: List[str], kind: TrackKind, header_line: str) -> Dict[str, int]:
    """
    Map canonical fields to column indexes.

    The first column mapping to a field wins. Raises StructuralImportError
    naming every missing required column and echoing the raw header line.
    """
    positions: Dict[str, int] = {}
    for index, cell in enumerate(header_cells):
        field_name = map_header(cell, kind)
        if not field_name or field_name == IGNORE:
            continue
        positions.setdefault(field_name, index)

    missing = [f for f in REQUIRED_FIELDS[kind] if f not in positions]
    if missing:
        labels = ', '.join(FIELD_LABELS[kind][f] for f in missing)
        raise StructuralImportError(
            f"Başlıklar eksik veya tanınmadı. Dosya en azından {labels} kolonlarını içermelidir. "
            f"(Mevcut başlık satırı: {header_line})"
        )
    return positions


def looks_like_header_row(name: str, email: str, kind: TrackKind) -> bool:
    """True when a data row repeats the header (exports that concatenate sheets)."""
    synonyms = HEADER_SYNONYMS[kind]
    name_key = normalise_header(name)
    email_key = normalise_header(email)
    return (
        (bool(name_key) and synonyms.get(name_key) == 'name')
        or (bool(email_key) and synonyms.get(email_key) == 'email')
    )
