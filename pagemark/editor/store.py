"""
Annotation persistence contract and two implementations.

The engine talks to storage only through AnnotationStore:
- list_annotations(document_id, page_number)
- add_annotation(document_id, annotation)
- update_annotation(document_id, annotation)  (full replace by id)
- delete_annotation(document_id, annotation_id)

InMemoryAnnotationStore keeps copies in a dict and is used by tests and
as the default. JsonAnnotationStore keeps one JSON file per document.
Both hand out copies, so callers never share instances with the store.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from pagemark.editor.annotations import Annotation
from pagemark.services.logging_service import get_logger

STORE_FORMAT_VERSION = 1


class AnnotationStoreError(Exception):
    """Raised when the store rejects or fails an operation."""


class AnnotationStore(ABC):
    """Persistence collaborator for one or more documents."""

    @abstractmethod
    def list_annotations(self, document_id: str, page_number: int) -> List[Annotation]:
        """Return the page's annotations in paint order."""
        pass

    @abstractmethod
    def add_annotation(self, document_id: str, annotation: Annotation) -> None:
        pass

    @abstractmethod
    def update_annotation(self, document_id: str, annotation: Annotation) -> None:
        """Replace the stored annotation with the same id."""
        pass

    @abstractmethod
    def delete_annotation(self, document_id: str, annotation_id: str) -> None:
        pass


class InMemoryAnnotationStore(AnnotationStore):

    def __init__(self) -> None:
        self._logger = get_logger(__name__)
        self._documents: Dict[str, List[Annotation]] = {}

    def all_annotations(self, document_id: str) -> List[Annotation]:
        return [a.clone() for a in self._documents.get(document_id, [])]

    def list_annotations(self, document_id: str, page_number: int) -> List[Annotation]:
        return [
            a.clone()
            for a in self._documents.get(document_id, [])
            if a.page_number == page_number
        ]

    def add_annotation(self, document_id: str, annotation: Annotation) -> None:
        annotations = self._documents.setdefault(document_id, [])
        if any(a.id == annotation.id for a in annotations):
            raise AnnotationStoreError(f"Annotation {annotation.id} already exists")
        annotations.append(annotation.clone())

    def update_annotation(self, document_id: str, annotation: Annotation) -> None:
        annotations = self._documents.get(document_id, [])
        for index, existing in enumerate(annotations):
            if existing.id == annotation.id:
                annotations[index] = annotation.clone()
                return
        raise AnnotationStoreError(f"Annotation {annotation.id} not found")

    def delete_annotation(self, document_id: str, annotation_id: str) -> None:
        annotations = self._documents.get(document_id, [])
        self._documents[document_id] = [a for a in annotations if a.id != annotation_id]


class JsonAnnotationStore(AnnotationStore):
    """
    File-backed store: <base_dir>/<document_id>.json.

    The file holds {"version": 1, "annotations": [...]} with annotations in
    paint order across all pages.
    """

    def __init__(self, base_dir: Path) -> None:
        self._logger = get_logger(__name__)
        self._base_dir = Path(base_dir)

    def _path(self, document_id: str) -> Path:
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", document_id)
        return self._base_dir / f"{safe_name}.json"

    def _read(self, document_id: str) -> List[Annotation]:
        path = self._path(document_id)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [Annotation.from_dict(item) for item in data.get("annotations", [])]
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            self._logger.error(f"Could not read annotations from {path}: {e}")
            raise AnnotationStoreError(f"Could not read {path}: {e}") from e

    def _write(self, document_id: str, annotations: List[Annotation]) -> None:
        path = self._path(document_id)
        payload = {
            "version": STORE_FORMAT_VERSION,
            "annotations": [a.to_dict() for a in annotations],
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            tmp_path.replace(path)
            self._logger.debug(f"Saved {len(annotations)} annotations to {path}")
        except OSError as e:
            self._logger.error(f"Could not write annotations to {path}: {e}")
            raise AnnotationStoreError(f"Could not write {path}: {e}") from e

    def list_annotations(self, document_id: str, page_number: int) -> List[Annotation]:
        return [a for a in self._read(document_id) if a.page_number == page_number]

    def add_annotation(self, document_id: str, annotation: Annotation) -> None:
        annotations = self._read(document_id)
        if any(a.id == annotation.id for a in annotations):
            raise AnnotationStoreError(f"Annotation {annotation.id} already exists")
        annotations.append(annotation)
        self._write(document_id, annotations)

    def update_annotation(self, document_id: str, annotation: Annotation) -> None:
        annotations = self._read(document_id)
        for index, existing in enumerate(annotations):
            if existing.id == annotation.id:
                annotations[index] = annotation
                self._write(document_id, annotations)
                return
        raise AnnotationStoreError(f"Annotation {annotation.id} not found")

    def delete_annotation(self, document_id: str, annotation_id: str) -> None:
        annotations = self._read(document_id)
        remaining = [a for a in annotations if a.id != annotation_id]
        if len(remaining) != len(annotations):
            self._write(document_id, remaining)
