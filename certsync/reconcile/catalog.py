"""Credential descriptor catalog.

Descriptors are the locally known credential templates; they are fixed at
deployment and loaded once per process.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialDescriptor:
    """A credential template expected to exist on the ledger once claimed.

    Attributes:
        id: Stable descriptor id.
        title: Credential title as issued.
        issuer: Issuer display name.
        template_image_ref: Placeholder image used when no file is available.
    """

    id: str
    title: str
    issuer: str
    template_image_ref: str = ""


DEFAULT_CATALOG: tuple[CredentialDescriptor, ...] = (
    CredentialDescriptor("1", "Professional Web Developer", "CertHub Academy", "/certificates/web-developer.jpg"),
    CredentialDescriptor("2", "SQL DB Specialist", "CertHub Academy", "/certificates/sql-specialist.jpg"),
    CredentialDescriptor("3", "Git Expert", "CertHub Academy", "/certificates/git-expert.jpg"),
    CredentialDescriptor("4", "React Advanced Patterns", "TechLearn Institute", "/certificates/react-patterns.jpg"),
    CredentialDescriptor("5", "Node.js Backend Mastery", "CodeMaster Academy", "/certificates/node-backend.jpg"),
    CredentialDescriptor("6", "TypeScript Fundamentals", "DevSkills Pro", "/certificates/typescript.jpg"),
    CredentialDescriptor("7", "Docker & Kubernetes", "CloudTech University", "/certificates/docker-kubernetes.jpg"),
)


def parse_catalog(entries: Sequence[dict]) -> List[CredentialDescriptor]:
    """Build descriptors from a list of JSON objects.

    Each entry needs ``id``, ``title`` and ``issuer``; ``templateImageRef``
    (or ``template_image_ref``) is optional.

    Raises:
        ValueError: On a missing field, wrong type, or duplicate id.
    """
    descriptors = []
    seen = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Catalog entry {index} must be object")
        try:
            descriptor = CredentialDescriptor(
                id=str(entry["id"]),
                title=str(entry["title"]),
                issuer=str(entry["issuer"]),
                template_image_ref=str(
                    entry.get("templateImageRef", entry.get("template_image_ref", ""))
                ),
            )
        except KeyError as e:
            raise ValueError(f"Catalog entry {index} missing field {e}")
        if descriptor.id in seen:
            raise ValueError(f"Duplicate catalog id: {descriptor.id}")
        seen.add(descriptor.id)
        descriptors.append(descriptor)
    return descriptors


def load_catalog(path: Union[str, Path]) -> List[CredentialDescriptor]:
    """Load descriptors from a JSON file containing an array of entries."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError("Catalog file must contain a JSON array")
    descriptors = parse_catalog(data)
    log.info(f"Loaded {len(descriptors)} credential descriptor(s) from {path}")
    return descriptors
