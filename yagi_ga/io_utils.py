"""
I/O utilities for the Yagi-Uda optimizer.

Handles CSV export and import of the per-generation run history.
"""

import csv
from pathlib import Path
from typing import List, Sequence, Union

from .data_models import GenerationRecord


HISTORY_FIELDS = [
    'index', 'best_fitness', 'average_fitness', 'valid_solution_count',
    'implausible_count', 'failure_count', 'population_best'
]


def save_history_csv(
    history: Sequence[GenerationRecord],
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save generation records to CSV file.

    CSV format:
        index,best_fitness,average_fitness,valid_solution_count,implausible_count,failure_count,population_best
        0,6.82,4.10,28,2,0,6.82
        ...

    Args:
        history: Generation records, generation 0 first
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved CSV file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = Path(output_path)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"History file already exists: {output_path}")

    # Create parent directory if needed
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=HISTORY_FIELDS)
        writer.writeheader()

        for record in history:
            writer.writerow(record.to_dict())

    return output_path


def load_history_csv(csv_path: Union[str, Path]) -> List[GenerationRecord]:
    """
    Load generation records from a history CSV file.

    Args:
        csv_path: Path to CSV file

    Returns:
        List of GenerationRecord in file order

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If CSV format is invalid
    """
    csv_path = Path(csv_path)

    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    records = []
    with open(csv_path, 'r', newline='') as f:
        reader = csv.DictReader(f)

        # Validate header
        missing = [col for col in HISTORY_FIELDS if col not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"Invalid history CSV {csv_path}. Missing columns: {missing}")

        for line_number, row in enumerate(reader, start=2):
            try:
                population_best = row['population_best']
                records.append(GenerationRecord(
                    index=int(row['index']),
                    best_fitness=float(row['best_fitness']),
                    average_fitness=float(row['average_fitness']),
                    valid_solution_count=int(row['valid_solution_count']),
                    implausible_count=int(row['implausible_count']),
                    failure_count=int(row['failure_count']),
                    population_best=float(population_best) if population_best else None
                ))
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid value in {csv_path} line {line_number}: {e}")

    return records
