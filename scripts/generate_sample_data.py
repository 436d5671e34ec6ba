#!/usr/bin/env python3
# ========================
# scripts/generate_sample_data.py
# ========================

"""
Write a sample data directory for the Chartor server and pipeline.

Usage: python scripts/generate_sample_data.py [data_dir] [first_year] [last_year]
"""

import sys
import os

# Add project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.utils.data_generator import SampleDataGenerator
from src.utils.logging_setup import setup_logging


def main():
    """Generate the yearly dataset files and the postal code reference."""
    setup_logging()

    data_dir = sys.argv[1] if len(sys.argv) > 1 else 'public/data'
    try:
        first_year = int(sys.argv[2]) if len(sys.argv) > 2 else 2011
        last_year = int(sys.argv[3]) if len(sys.argv) > 3 else 2015
    except ValueError:
        print("Usage: python generate_sample_data.py [data_dir] [first_year] [last_year]")
        print("Example: python generate_sample_data.py public/data 2011 2020")
        sys.exit(1)

    if last_year < first_year:
        print("last_year must not be before first_year")
        sys.exit(1)

    stats = SampleDataGenerator(seed=42).generate_directory(
        data_dir, years=range(first_year, last_year + 1)
    )

    print(f"="*60)
    print(f"SAMPLE DATA WRITTEN TO {data_dir}")
    print(f"="*60)
    for file_name in stats['files']:
        print(f"  • {file_name}")
    print(f"Rows: {stats['total_rows']:,} ({stats['malformed_rows']:,} with malformed stats)")


if __name__ == '__main__':
    main()
