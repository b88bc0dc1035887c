from __future__ import annotations

import re
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
BUSINESS_DIRS = (ROOT / 'gradschool' / 'services', ROOT / 'gradschool' / 'domain')

CLOCK_CALLS = re.compile(r'\b(?:datetime\.(?:now|utcnow|today)|date\.today)\(')


def test_business_logic_reads_time_through_time_provider() -> None:
    violations = []
    for directory in BUSINESS_DIRS:
        for file_path in sorted(directory.rglob('*.py')):
            for idx, line in enumerate(file_path.read_text(encoding='utf-8').splitlines(), start=1):
                if CLOCK_CALLS.search(line):
                    violations.append(f'{file_path.relative_to(ROOT)}:{idx}: {line.strip()}')

    assert not violations, 'Direct clock access found:\n' + '\n'.join(violations)
