"""Selfie acceptability scoring."""

from __future__ import annotations

from typing import TYPE_CHECKING

from facelens.models import ValidationResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from facelens.models import Face

# Mean confidence below this (classifier-native units) fails validation.
MIN_MEAN_CONFIDENCE: float = 10.0


def score_selfie(faces: Sequence[Face], min_faces: int | None = 1, max_faces: int | None = 1) -> ValidationResult:
    """Judge whether a face list makes an acceptable selfie.

    Unset or zero bounds fall back to exactly one face.
    """
    min_faces = min_faces or 1
    max_faces = max_faces or 1
    face_count = len(faces)
    issues: list[str] = []
    is_valid = True

    if face_count < min_faces:
        is_valid = False
        if face_count == 0:
            issues.append("No faces detected in image")
            issues.append("Image may be too dark or blurry")
        else:
            issues.append(f"Too few faces detected ({face_count} found, expected at least {min_faces})")
    elif face_count > max_faces:
        is_valid = False
        issues.append(f"Multiple faces detected ({face_count} found, expected {max_faces})")

    confidence = 0.0
    if face_count > 0:
        confidence = sum(face.confidence for face in faces) / face_count
        if confidence < MIN_MEAN_CONFIDENCE:
            is_valid = False
            issues.append("Low confidence score for detected face(s)")

    return ValidationResult(
        is_valid=is_valid,
        issues=issues,
        confidence=confidence,
        face_count=face_count,
    )
