"""
Controlled vocabulary for extracted questions.

The category and intake names below are the values seeded into the database
on first start. The extraction prompt and the response parser only accept
labels from a Vocabulary instance, so nothing outside it can reach the store.
"""

from dataclasses import dataclass, field
from typing import Tuple


# ─── Seed data ─────────────────────────────────────────────────────────────────

BASIC = "BASIC"
CLINICAL = "CLINICAL"

DEFAULT_CATEGORIES = [
    {"name": "anatomy-thorax", "display_name": "Anatomy - Thorax", "type": BASIC},
    {"name": "anatomy-abdomen", "display_name": "Anatomy - Abdomen", "type": BASIC},
    {"name": "anatomy-superior-extremity", "display_name": "Anatomy - Superior Extremity", "type": BASIC},
    {"name": "anatomy-inferior-extremity", "display_name": "Anatomy - Inferior Extremity", "type": BASIC},
    {"name": "anatomy-head-neck-brain", "display_name": "Anatomy - Head, Neck & Brain", "type": BASIC},
    {"name": "physiology", "display_name": "Physiology", "type": BASIC},
    {"name": "pathology", "display_name": "Pathology", "type": BASIC},
    {"name": "microbiology", "display_name": "Microbiology", "type": BASIC},
    {"name": "biostatistics", "display_name": "Biostatistics", "type": BASIC},
    {"name": "clinical-git-colorectal-abdomen", "display_name": "Clinical - GIT, Colorectal & Abdomen", "type": CLINICAL},
    {"name": "clinical-hepatobiliary-pancreas", "display_name": "Clinical - Hepatobiliary & Pancreas", "type": CLINICAL},
    {"name": "clinical-urology", "display_name": "Clinical - Urology", "type": CLINICAL},
    {"name": "clinical-orthopedics", "display_name": "Clinical - Orthopedics", "type": CLINICAL},
    {"name": "clinical-breast-endocrine", "display_name": "Clinical - Breast & Endocrine", "type": CLINICAL},
    {"name": "clinical-ent", "display_name": "Clinical - ENT", "type": CLINICAL},
    {"name": "clinical-skin", "display_name": "Clinical - Skin", "type": CLINICAL},
    {"name": "clinical-vascular-surgery", "display_name": "Clinical - Vascular Surgery", "type": CLINICAL},
    {"name": "clinical-neurosurgery", "display_name": "Clinical - Neurosurgery", "type": CLINICAL},
    {"name": "clinical-organ-transplantation", "display_name": "Clinical - Organ Transplantation", "type": CLINICAL},
    {"name": "clinical-pediatric-surgery", "display_name": "Clinical - Pediatric Surgery", "type": CLINICAL},
    {"name": "clinical-perioperative-care", "display_name": "Clinical - Perioperative care", "type": CLINICAL},
    {"name": "clinical-post-operative-care", "display_name": "Clinical - Post operative care", "type": CLINICAL},
    {"name": "clinical-surgical-emergency-trauma", "display_name": "Clinical - Surgical Emergency & Trauma", "type": CLINICAL},
]

DEFAULT_INTAKES = [
    {"name": "january", "display_name": "January"},
    {"name": "april-may", "display_name": "April/May"},
    {"name": "september", "display_name": "September"},
]


@dataclass(frozen=True)
class Vocabulary:
    """Allowed category and intake labels."""
    categories: Tuple[str, ...] = field(
        default_factory=lambda: tuple(c["name"] for c in DEFAULT_CATEGORIES)
    )
    intakes: Tuple[str, ...] = field(
        default_factory=lambda: tuple(i["name"] for i in DEFAULT_INTAKES)
    )

    def has_category(self, name: str) -> bool:
        return name in self.categories

    def has_intake(self, name: str) -> bool:
        return name in self.intakes


DEFAULT_VOCABULARY = Vocabulary()
