"""Read spreadsheet exports into row mappings."""

import csv
from pathlib import Path


def read_rows(csv_file_path: str) -> list[dict[str, str]]:
    """Read a CSV export into a list of row dicts.

    Column names are stripped and lower-cased so that downstream lookups can
    be case-insensitive. The delimiter (comma or semicolon) is sniffed from
    the file; blank lines are dropped.

    Args:
        csv_file_path: Path to CSV file

    Returns:
        List of row dicts, in file order

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If CSV file has no header
    """
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=";,").delimiter
        except csv.Error:
            # Single-column files give the sniffer nothing to work with
            delimiter = ";" if sample.count(";") >= sample.count(",") else ","

        reader = csv.reader(f, delimiter=delimiter)
        header = next(reader, None)
        if not header:
            raise ValueError("CSV file has no columns")
        columns = [name.strip().lower() for name in header]

        rows = []
        for values in reader:
            if not any(v.strip() for v in values):
                continue
            row = {}
            for i, column in enumerate(columns):
                if not column:
                    continue
                row[column] = values[i].strip() if i < len(values) else ""
            rows.append(row)

    return rows
