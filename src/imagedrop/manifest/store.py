#!/usr/bin/env python3
"""
IMAGEDROP MANIFEST STORE - Round-Trip Compose Patcher
-----------------------------------------------------
Loads the compose manifest, retargets service images, and writes it back
atomically.

The document is kept as ruamel.yaml round-trip nodes (CommentedMap,
CommentedSeq, scalars), so sections this module knows nothing about
(networks, volumes, x-extensions, comments) survive unchanged. Only the
'image' field of matching services is ever assigned.

Author: ImageDrop Team
Date: 2026-10-19
"""

import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Tuple, Union

from ruamel.yaml import YAML, YAMLError
from ruamel.yaml.comments import CommentedMap

from imagedrop.core.errors import ManifestMalformed, ManifestUnreadable, ManifestWriteFailed
from imagedrop.core.models import ArtifactIdentity, PatchOutcome, ServiceEntry

logger = logging.getLogger("imagedrop.manifest")

TEMP_SUFFIX = ".tmp"

_ENTRY_FIELDS = ("image", "container_name", "hostname", "networks",
                 "environment", "volumes", "command", "restart")


@dataclass
class ManifestDocument:
    """The parsed manifest. 'root' is the ruamel node tree, owned by the store."""
    root: CommentedMap
    path: Path

    def services(self) -> Dict[str, Any]:
        services = self.root.get("services")
        if isinstance(services, dict):
            return services
        return {}

    def service(self, name: str) -> ServiceEntry:
        body = self.services()[name]
        if not isinstance(body, dict):
            return ServiceEntry(name=name)
        known = {key: body.get(key) for key in _ENTRY_FIELDS}
        extra = {k: v for k, v in body.items() if k not in _ENTRY_FIELDS}
        return ServiceEntry(name=name, extra=extra, **known)


class ManifestStore:
    """
    Exclusive owner of the manifest file for the lifetime of the agent.

    'apply' is the only compound operation and runs under the store lock,
    so pooled pipelines still have a single writer.
    """

    def __init__(self, manifest_path: Union[str, Path]):
        self.path = Path(manifest_path)
        self.temp_path = self.path.with_name(self.path.name + TEMP_SUFFIX)
        self.lock = RLock()

        self.yaml = YAML(typ='rt')
        self.yaml.preserve_quotes = True
        # Compose style: 2-space maps, list dashes indented under their key
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.width = 4096

    # --- Loading ---

    def load(self) -> ManifestDocument:
        try:
            raw_text = self.path.read_text(encoding='utf-8-sig')
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestUnreadable(f"Cannot read manifest: {e}", str(self.path))

        try:
            root = self.yaml.load(raw_text)
        except YAMLError as e:
            raise ManifestMalformed(f"Cannot parse manifest: {e}", str(self.path))

        if not isinstance(root, CommentedMap):
            kind = type(root).__name__ if root is not None else "empty document"
            raise ManifestMalformed(f"Manifest root must be a mapping, got {kind}", str(self.path))

        return ManifestDocument(root=root, path=self.path)

    # --- Patching ---

    def matching_services(self, document: ManifestDocument, logical_name: str) -> List[str]:
        """
        Service keys starting with 'logical_name'. Prefix matching lets one
        archive retarget every variant of a service ('web' -> 'web-a', 'web-b'),
        and also matches unrelated names sharing the stem ('webhook').
        """
        return [key for key in document.services() if str(key).startswith(logical_name)]

    def patch_image_reference(self, document: ManifestDocument, logical_name: str,
                              version_tag: str) -> Tuple[ManifestDocument, bool]:
        target = ArtifactIdentity(name=logical_name, version=version_tag).reference
        services = document.services()
        changed = False

        for key in self.matching_services(document, logical_name):
            body = services[key]
            if not isinstance(body, dict):
                logger.warning(f"Service '{key}' has no mapping body, not patched.")
                continue

            current = body.get("image")
            if current == target:
                continue

            body["image"] = target
            changed = True
            logger.info(f"Updated service '{key}': image '{current}' -> '{target}'")

        return document, changed

    # --- Persistence ---

    def render(self, document: ManifestDocument) -> str:
        stream = io.StringIO()
        self.yaml.dump(document.root, stream)
        return stream.getvalue()

    def store(self, document: ManifestDocument) -> None:
        """
        Writes to '<manifest>.tmp' and renames it over the live file only
        after the write has fully succeeded. On failure the temp file is
        removed and the live manifest is left as it was.
        """
        try:
            content = self.render(document)
        except YAMLError as e:
            raise ManifestWriteFailed(f"Cannot serialize manifest: {e}", str(self.path))

        try:
            with open(self.temp_path, 'w', encoding='utf-8') as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(self.temp_path, self.path)
        except OSError as e:
            self._discard_temp()
            raise ManifestWriteFailed(f"Atomic write failed: {e}", str(self.path))

        logger.info(f"Manifest written: {self.path}")

    def apply(self, identity: ArtifactIdentity) -> PatchOutcome:
        """Load, patch and (if anything changed) store, as one critical section."""
        with self.lock:
            document = self.load()
            matched = self.matching_services(document, identity.name)
            if not matched:
                return PatchOutcome(matched=[], changed=False)

            document, changed = self.patch_image_reference(document, identity.name, identity.version)
            if changed:
                self.store(document)
            else:
                logger.info(f"All services matching '{identity.name}' already use "
                            f"'{identity.reference}', manifest not rewritten.")
            return PatchOutcome(matched=matched, changed=changed)

    def _discard_temp(self) -> None:
        try:
            if self.temp_path.exists():
                self.temp_path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove temporary manifest {self.temp_path}: {e}")
