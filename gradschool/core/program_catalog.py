from __future__ import annotations

from gradschool.models import ProgramLevel


# (name, abbreviation, level) for every Graduate School program on record.
PROGRAM_CATALOG: tuple[tuple[str, str, ProgramLevel], ...] = (
    ('Doctor in Business Management', 'DBM', ProgramLevel.DOCTORATE),
    ('Doctor in Business Management Specialized in Information Systems', 'DBM-IS', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Applied Linguistics', 'PHDED-AL', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Educational Leadership', 'PHDED-EL', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Counseling', 'PHDED-C', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Filipino', 'PHDED-FIL', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Information Technology Integration', 'PHDED-ITI', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Mathematics', 'PHDED-MATH', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Education, Major in: Physical Education', 'PHDED-PE', ProgramLevel.DOCTORATE),
    ('Doctor of Philosophy in Pharmacy', 'PHD-PHARM', ProgramLevel.DOCTORATE),
    ('Master of Arts in Educational Management', 'MAEM', ProgramLevel.MASTERAL),
    ('Master of Arts in Elementary Education', 'MAEE', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: English', 'MAED-ENG', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: Filipino', 'MAED-FIL', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: Information Technology Integration', 'MAED-ITI', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: Mathematics', 'MAED-MATH', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: Music Education', 'MAED-ME', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: Physical Education', 'MAED-PE', ProgramLevel.MASTERAL),
    ('Master of Arts in Education, Major in: Sociology', 'MAED-SOC', ProgramLevel.MASTERAL),
    ('Master of Arts in Religious Education', 'MARE', ProgramLevel.MASTERAL),
    ('Master of Arts in Values Education', 'MAVE', ProgramLevel.MASTERAL),
    ('Master of Arts in Teaching Chemistry', 'MATCHEM', ProgramLevel.MASTERAL),
    ('Master of Arts in Teaching Physics', 'MATPHY', ProgramLevel.MASTERAL),
    ('Master in Engineering Education, Major in: Civil Engineering', 'MEE-CE', ProgramLevel.MASTERAL),
    ('Master in Engineering Education, Major in: Electronics and Communications Engineering', 'MEE-ECE', ProgramLevel.MASTERAL),
    ('Master in Information System', 'MIS', ProgramLevel.MASTERAL),
    ('Master in Information Technology', 'MIT', ProgramLevel.MASTERAL),
    ('Master of Science in Medical Technology, Major in: Biomedical Science', 'MSMT-BS', ProgramLevel.MASTERAL),
    ('Master of Science in Medical Technology, Major in: Laboratory Leadership and Management', 'MSMT-LLM', ProgramLevel.MASTERAL),
    ('Master of Science in Medical Technology, Major in: Medical Laboratory Science Education and Management', 'MSMT-MLSEM', ProgramLevel.MASTERAL),
    ('Master of Science in Medical Technology, Major in: Community Health', 'MSMT-CH', ProgramLevel.MASTERAL),
    ('Master of Science in Pharmacy', 'MSPHARM', ProgramLevel.MASTERAL),
    ('Master of Arts in Counseling', 'MAC', ProgramLevel.MASTERAL),
    ('Master in Pastoral Ministry (Non-Thesis), Specialized in: Family Ministry and Counseling', 'MPM-FMC', ProgramLevel.MASTERAL),
    ('Master in Pastoral Ministry (Non-Thesis), Specialized in: Pastoral Management', 'MPM-PM', ProgramLevel.MASTERAL),
    ('Master in Pastoral Ministry (Non-Thesis), Specialized in: Retreat Giving and Spirituality', 'MPM-RGS', ProgramLevel.MASTERAL),
)

_BY_NAME = {name.lower(): (name, abbreviation, level) for name, abbreviation, level in PROGRAM_CATALOG}


def catalog_entry(program_name: str | None) -> tuple[str, str, ProgramLevel] | None:
    return _BY_NAME.get(str(program_name or '').strip().lower())
