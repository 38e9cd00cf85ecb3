"""
Ecosystem detection — which ecosystem does this project use?

Used by ``add_package`` when the caller names no runtime.  Each rule
pairs indicator files with a base confidence; every extra indicator
file present adds ``multi_file_bonus``.  A framework bonus adds a fixed
amount when a declared dependency name contains one of its framework
names.  Confidence is capped at 1.0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from runtimekit.core.models.package import Ecosystem
from runtimekit.core.models.project import DetectionSettings

logger = logging.getLogger(__name__)

DeclaredNames = Callable[[Ecosystem], Iterable[str]]


@dataclass(frozen=True)
class Detection:
    ecosystem: Ecosystem
    confidence: float
    files: tuple[str, ...]


def detect_ecosystems(
    project_root: Path,
    settings: DetectionSettings | None = None,
    declared: DeclaredNames | None = None,
) -> list[Detection]:
    """Ecosystems with at least one indicator file, best first.

    Args:
        project_root: Directory to inspect.
        settings:     Rules and bonuses (defaults when omitted).
        declared:     ``ecosystem -> dependency names``; enables the
                      framework bonus.
    """
    settings = settings or DetectionSettings()
    best: dict[Ecosystem, Detection] = {}

    for rule in settings.rules:
        eco = Ecosystem.parse(rule.ecosystem)
        present = tuple(f for f in rule.files if (project_root / f).is_file())
        if not present:
            continue
        confidence = rule.confidence + (len(present) - 1) * settings.multi_file_bonus
        if eco not in best or confidence > best[eco].confidence:
            best[eco] = Detection(eco, confidence, present)

    if declared is not None:
        for bonus in settings.bonuses:
            eco = Ecosystem.parse(bonus.ecosystem)
            found = best.get(eco)
            if found is None:
                continue
            names = [n.lower() for n in declared(eco)]
            if any(fw in name for fw in bonus.frameworks for name in names):
                logger.debug("Framework bonus +%.2f for %s", bonus.bonus, eco.value)
                best[eco] = Detection(eco, found.confidence + bonus.bonus, found.files)

    detections = [
        Detection(d.ecosystem, round(min(d.confidence, 1.0), 4), d.files)
        for d in best.values()
    ]
    detections.sort(key=lambda d: (-d.confidence, d.ecosystem.value))
    for d in detections:
        logger.debug("Detected %s (%.0f%%) from %s", d.ecosystem.value, d.confidence * 100, ", ".join(d.files))
    return detections


def primary_ecosystem(
    project_root: Path,
    settings: DetectionSettings | None = None,
    declared: DeclaredNames | None = None,
) -> Ecosystem | None:
    detections = detect_ecosystems(project_root, settings, declared)
    return detections[0].ecosystem if detections else None
