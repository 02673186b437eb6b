"""CLI script to bulk-import students from a JSON file into the configured store.
Usage: python scripts/import_students.py students.json
"""
import sys
import argparse
import json
import pathlib
# Ensure `backend/` is on sys.path so `roster` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from roster import services
from roster.config import settings
from roster.database import open_store
from roster.repositories import StoreError


def main(path: pathlib.Path) -> int:
    """Create every student listed in the JSON array at `path`.

    Duplicates and invalid entries are skipped and reported; a store
    failure stops the import. Returns a process exit code.
    """
    try:
        items = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        print(f'Could not read {path}: {e}')
        return 1
    if not isinstance(items, list):
        print(f'{path} must contain a JSON array of students')
        return 1
    store = open_store(settings)
    try:
        summary = services.StudentService(store).import_records(items)
    except StoreError as e:
        print(f'Import aborted: {e}')
        return 1
    finally:
        store.close()
    for err in summary['errors']:
        print(f"Entry {err['index']} skipped: {err['error']}")
    print(f"Added {summary['added']}, duplicates {summary['duplicates']}, invalid {len(summary['errors'])}")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('path', type=pathlib.Path, help='JSON file holding an array of student records')
    args = parser.parse_args()
    sys.exit(main(args.path))
