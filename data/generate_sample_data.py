"""Generate a sample notes warehouse for notelens testing."""

import sys
from pathlib import Path

from notelens.config import get_settings
from notelens.executor.duckdb_executor import DuckDBExecutor
from notelens.sample import generate_sample_data


def main(db_path: Path) -> None:
    if db_path.exists():
        db_path.unlink()  # always start from a clean file

    with DuckDBExecutor(str(db_path)) as executor:
        layout = get_settings().layout
        counts = generate_sample_data(executor, layout)

        print(f"Sample warehouse written to {db_path}")
        for table, count in counts.items():
            print(f"  - {count} {table}")

        result = executor.execute(
            f"SELECT status, COUNT(*) AS notes FROM {layout.table('notes')} "
            "GROUP BY status ORDER BY status"
        )
        for row in result.data:
            print(f"  {row['status']}: {row['notes']} notes")


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent / "notelens.duckdb"
    main(target)
