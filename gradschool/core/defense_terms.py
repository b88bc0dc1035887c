from __future__ import annotations

from gradschool.models import DefenseType, ProgramLevel


# Matched as substrings, so 'doctorate', 'doctoral' and 'PhDEd' all qualify.
DOCTORATE_KEYWORDS = ('doctor', 'phd', 'dba', 'edd', 'dsc', 'dpm', 'dpa')

_DEFENSE_TYPE_KEYS = {
    'proposal': DefenseType.PROPOSAL,
    'prefinal': DefenseType.PRE_FINAL,
    'final': DefenseType.FINAL,
}


def defense_type_key(value: str | None) -> str:
    return ''.join(ch for ch in str(value or '').lower() if 'a' <= ch <= 'z')


def normalize_defense_type(value: str | None) -> DefenseType | None:
    """Map ``Pre-final``/``pre final``/``PRE-FINAL`` style input onto a DefenseType."""
    return _DEFENSE_TYPE_KEYS.get(defense_type_key(value))


def classify_program_level(program_name: str | None) -> ProgramLevel:
    # Dots are dropped first so Ph.D./Ed.D./D.B.A. collapse to their keywords.
    text = str(program_name or '').lower().replace('.', '')
    if any(keyword in text for keyword in DOCTORATE_KEYWORDS):
        return ProgramLevel.DOCTORATE
    return ProgramLevel.MASTERAL
