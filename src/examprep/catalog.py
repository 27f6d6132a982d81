import logging
import os
from typing import Any, Dict, List

import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = [
    ("medical", "Medical & Healthcare", ["USMLE", "NBDE", "NAPLEX", "NCLEX", "NAVLE", "NPTE", "CMA"]),
    ("legal", "Legal", ["Bar Exam", "Paralegal Certification", "Notary Public", "Legal Assistant"]),
    ("engineering", "Engineering & Technical", ["PE", "FE", "Electrical Engineering", "Mechanical Engineering", "Civil Engineering", "HVAC Certification", "Welding Certification"]),
    ("trades", "Skilled Trades", ["Electrical License", "Plumbing License", "Carpentry License", "HVAC Technician", "Welding Certification", "Cosmetology License", "Barber License"]),
    ("business", "Business & Finance", ["CPA Exam", "CFA Exam", "Real Estate License", "Insurance License", "Series 7 Exam", "PMP"]),
    ("education", "Education & Social Work", ["Teaching Certification", "School Administrator", "LCSW", "Counseling Certification", "Psychology License"]),
]

REQUIRED_COLUMNS = {"category_id", "category_name", "exam"}


# --- Service Layer: Exam Catalog ---
class ExamCatalog:
    """Exam categories and the licensing exams offered under each."""

    def __init__(self, path: str):
        self.path = path
        self.categories: Dict[str, Dict[str, Any]] = {}
        self.load()

    def load(self):
        self.categories = {}
        if os.path.exists(self.path):
            try:
                df = pd.read_csv(self.path, encoding="utf-8")
                if REQUIRED_COLUMNS.issubset(df.columns):
                    for row in df.to_dict("records"):
                        self._add(row["category_id"], row["category_name"], row["exam"])
                    logger.info(f"Loaded {len(df)} exams from {self.path}")
                else:
                    logger.error(f"Skipping {self.path}: Missing columns.")
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load {self.path}: {e}")

        if not self.categories:
            logger.warning("No exam catalog file found. Loading built-in catalog.")
            for category_id, name, exams in DEFAULT_CATALOG:
                for exam in exams:
                    self._add(category_id, name, exam)

    def _add(self, category_id: str, name: str, exam: str):
        category = self.categories.setdefault(
            category_id, {"id": category_id, "name": name, "exams": []}
        )
        if exam not in category["exams"]:
            category["exams"].append(exam)

    def get_categories(self) -> List[Dict[str, Any]]:
        return list(self.categories.values())

