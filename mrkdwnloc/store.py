"""Resources, translation sets and the files they are kept in."""

from __future__ import annotations

import json
import logging
import pathlib
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

import json5

from .errors import DocumentParseError
from .structures import TranslationStatus

logger = logging.getLogger(__name__)

DATATYPE = "mrkdwn"


def hash_key(project: str, locale: str, key: str, datatype: str = DATATYPE) -> str:
    """Return the lookup key of a resource translated into ``locale``."""

    return f"rs_{project}_{locale}_{key}_{datatype}"


@dataclass
class Resource:
    """One translatable string, keyed by its JSON property name."""

    key: str
    source: str
    project: str = ""
    source_locale: str = "en-US"
    datatype: str = DATATYPE
    comment: Optional[str] = None
    index: int = 0
    path: Optional[str] = None
    target: Optional[str] = None
    target_locale: Optional[str] = None
    state: str = "new"

    def hash_key_for_translation(self, locale: str) -> str:
        return hash_key(self.project, locale, self.key, self.datatype)

    def hash_key(self) -> str:
        return hash_key(
            self.project,
            self.target_locale or self.source_locale,
            self.key,
            self.datatype,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "project": self.project,
            "key": self.key,
            "sourceLocale": self.source_locale,
            "source": self.source,
            "datatype": self.datatype,
            "state": self.state,
        }
        if self.target_locale is not None:
            data["targetLocale"] = self.target_locale
        if self.target is not None:
            data["target"] = self.target
        if self.comment:
            data["comment"] = self.comment
        if self.path:
            data["path"] = self.path
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        if "key" not in data or "source" not in data:
            raise DocumentParseError(
                "Translation entries need at least a 'key' and a 'source'."
            )
        return cls(
            key=str(data["key"]),
            source=str(data["source"]),
            project=str(data.get("project", "")),
            source_locale=str(data.get("sourceLocale", "en-US")),
            datatype=str(data.get("datatype", DATATYPE)),
            comment=data.get("comment"),
            path=data.get("path"),
            target=data.get("target"),
            target_locale=data.get("targetLocale"),
            state=str(data.get("state", "translated")),
        )


class TranslationSet:
    """An ordered collection of resources addressed by hash key.

    The set is shared between locale passes that may run in parallel, so every
    access goes through a lock.
    """

    def __init__(self, source_locale: str = "en-US") -> None:
        self.source_locale = source_locale
        self._resources: Dict[str, Resource] = {}
        self._lock = threading.Lock()

    def add(self, resource: Resource) -> bool:
        """Add a resource; returns False if one with the same key exists."""

        key = resource.hash_key()
        with self._lock:
            if key in self._resources:
                return False
            self._resources[key] = resource
            return True

    def add_all(self, resources: Iterable[Resource]) -> None:
        for resource in resources:
            self.add(resource)

    def get(self, key: str) -> Optional[Resource]:
        with self._lock:
            return self._resources.get(key)

    def get_all(self) -> List[Resource]:
        with self._lock:
            return list(self._resources.values())

    def size(self) -> int:
        with self._lock:
            return len(self._resources)

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.get_all())


def load_translations(path: pathlib.Path, source_locale: str = "en-US") -> TranslationSet:
    """Read a translations file into a set.

    The file holds a list of resource objects, or an object with such a list
    under ``"resources"``. Comments and trailing commas are accepted.
    """

    try:
        data = json5.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DocumentParseError(f"Could not read translations from {path}: {exc}") from exc
    except ValueError as exc:
        raise DocumentParseError(f"Translations file {path} is not valid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("resources", [])
    if not isinstance(data, list):
        raise DocumentParseError(
            f"Translations file {path} must contain a list of resources."
        )

    translations = TranslationSet(source_locale)
    for entry in data:
        if not isinstance(entry, dict):
            raise DocumentParseError(
                f"Translations file {path} contains a non-object entry."
            )
        translations.add(Resource.from_dict(entry))
    logger.debug("Loaded %d translations from %s", len(translations), path)
    return translations


def save_resources(path: pathlib.Path, resources: Iterable[Resource]) -> None:
    """Write resources as a JSON list, the format ``load_translations`` reads."""

    payload = [resource.to_dict() for resource in resources]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=4, ensure_ascii=False), encoding="utf-8")


class TranslationStatusLog:
    """Collects per document, per locale completeness records."""

    FILE_NAME = "translation-status.json"

    def __init__(self) -> None:
        self.records: List[TranslationStatus] = []
        self._lock = threading.Lock()

    def add(self, status: TranslationStatus) -> None:
        with self._lock:
            self.records.append(status)

    def to_dict(self) -> Dict[str, List[str]]:
        translated: List[str] = []
        untranslated: List[str] = []
        with self._lock:
            for record in self.records:
                (translated if record.fully_translated else untranslated).append(record.path)
        return {"translated": translated, "untranslated": untranslated}

    def write(self, directory: pathlib.Path) -> pathlib.Path:
        destination = directory / self.FILE_NAME
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(
            json.dumps(self.to_dict(), indent=4, ensure_ascii=False),
            encoding="utf-8",
        )
        return destination
