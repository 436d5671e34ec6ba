# ========================
# src/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Writes a reproducible sample data directory: one museum attendance CSV per
year plus a small postal code reference file.
"""

import csv
import random
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

DATASET_COLUMNS = [
    'id', 'name', 'city', 'country', 'country_code', 'postal_code', 'street',
    'year', 'status', 'stats', 'tags', 'phone', 'website', 'lat', 'lon',
]


class SampleDataGenerator:
    """
    Generator for realistic museum attendance datasets, with a controlled
    share of malformed statistics and missing postal codes.
    """

    MUSEUMS = [
        {"id": "M001", "name": "Musée du Louvre", "city": "Paris", "postal_code": "75001",
         "street": "Rue de Rivoli", "base": 90000, "label": "Musée de France"},
        {"id": "M002", "name": "Musée d'Orsay", "city": "Paris", "postal_code": "75007",
         "street": "Rue de la Légion d'Honneur", "base": 40000, "label": "Musée de France"},
        {"id": "M003", "name": "Musée des Beaux-Arts", "city": "Lyon", "postal_code": "69001",
         "street": "Place des Terreaux", "base": 12000, "label": "Musée de France"},
        {"id": "M004", "name": "MuCEM", "city": "Marseille", "postal_code": "13002",
         "street": "Promenade Robert Laffont", "base": 25000, "label": "Musée de France"},
        {"id": "M005", "name": "Musée d'Art Moderne", "city": "Saint-Étienne", "postal_code": "",
         "street": "Rue Fernand Léger", "base": 5000, "label": "Musée de France"},
        {"id": "M006", "name": "Cité de l'Espace", "city": "Toulouse", "postal_code": "31500",
         "street": "Avenue Jean Gonord", "base": 15000, "label": "Centre culturel"},
        {"id": "M007", "name": "Musée Basque", "city": "Bayonne", "postal_code": "",
         "street": "Quai des Corsaires", "base": 3000, "label": "Musée de France"},
        {"id": "M008", "name": "Galerie Municipale", "city": "", "postal_code": "",
         "street": "", "base": 800, "label": "Galerie", "country": "Belgique", "country_code": "be"},
    ]

    POSTAL_CODES = [
        ("PARIS 01", "75001"),
        ("LYON 01", "69001"),
        ("MARSEILLE 02", "13002"),
        ("ST ETIENNE", "42000"),
        ("SAINT ETIENNE", "42100"),
        ("TOULOUSE", "31500"),
        ("BAYONNE", "64100"),
    ]

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
        """
        self.random = random.Random(seed)
        logger.info(f"SampleDataGenerator initialized with seed: {seed}")

    def generate_directory(self,
                           data_dir: str,
                           years: Iterable[int] = range(2011, 2016),
                           error_rate: float = 0.1) -> Dict[str, Any]:
        """
        Write one dataset file per year and the postal code reference.

        Args:
            data_dir (str): Output directory
            years (iterable[int]): Years to generate
            error_rate (float): Fraction of rows with a malformed stats field

        Returns:
            dict: Generation statistics
        """
        if not 0.0 <= error_rate <= 1.0:
            raise ValueError("error_rate must be between 0 and 1")

        path = Path(data_dir)
        path.mkdir(parents=True, exist_ok=True)

        stats = {'files': [], 'total_rows': 0, 'malformed_rows': 0}
        for year in years:
            file_name = f"{year}_museums.csv"
            rows = self.generate_rows(year, error_rate)
            self._write_csv(path / file_name, DATASET_COLUMNS, rows)
            stats['files'].append(file_name)
            stats['total_rows'] += len(rows)
            stats['malformed_rows'] += sum(1 for row in rows if not row['stats'].startswith('payant:') or ';' not in row['stats'])

        self.write_postal_codes(path / "laposte_hexasmal.csv")
        stats['files'].append("laposte_hexasmal.csv")

        logger.info(
            f"Generated {stats['total_rows']} rows in {len(stats['files'])} files under {path}"
        )
        return stats

    def generate_rows(self, year: int, error_rate: float = 0.1) -> List[Dict[str, str]]:
        """Build the rows of one year, one per museum."""
        growth = 1 + (year - 2011) * 0.04
        rows = []
        for museum in self.MUSEUMS:
            payant = int(museum["base"] * growth * self.random.uniform(0.8, 1.2))
            gratuit = int(payant * self.random.uniform(0.2, 0.6))
            if self.random.random() < error_rate:
                stats = self.random.choice(["payant:n/a", "foo:bar", "", f"gratuit:{gratuit}"])
            else:
                stats = f"payant:{payant};gratuit:{gratuit}"

            rows.append({
                'id': museum["id"],
                'name': museum["name"],
                'city': museum["city"],
                'country': museum.get("country", "France"),
                'country_code': museum.get("country_code", "fr"),
                'postal_code': museum["postal_code"],
                'street': museum["street"],
                'year': str(year),
                'status': "open",
                'stats': stats,
                'tags': f"label:{museum['label']}",
                'phone': f"+33 1 {self.random.randint(10, 99)} {self.random.randint(10, 99)} {self.random.randint(10, 99)} {self.random.randint(10, 99)}",
                'website': "",
                'lat': f"{self.random.uniform(42.0, 51.0):.5f}",
                'lon': f"{self.random.uniform(-4.0, 8.0):.5f}",
            })
        return rows

    def write_postal_codes(self, file_path: Path) -> None:
        """Write the postal code reference file (semicolon separated, like La Poste's)."""
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f, delimiter=';')
            writer.writerow(['code_commune_insee', 'nom_de_la_commune', 'code_postal', 'ligne_5'])
            for index, (commune, postal_code) in enumerate(self.POSTAL_CODES):
                writer.writerow([f"{index:05d}", commune, postal_code, ""])

    def _write_csv(self, file_path: Path, headers: List[str], rows: List[Dict[str, str]]) -> None:
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=headers)
            writer.writeheader()
            writer.writerows(rows)
        logger.debug(f"Wrote {len(rows)} rows to {file_path}")
