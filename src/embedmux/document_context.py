from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urljoin

from lsprotocol.types import WorkspaceFolder


@dataclass(frozen=True)
class DocumentContext:
    """Resolves link targets written inside one document.

    Root-relative references (``/css/site.css``) resolve against the workspace
    folder that contains the document; everything else resolves against the
    document itself.
    """

    uri: str
    workspace_folders: tuple[WorkspaceFolder, ...] = field(default_factory=tuple)

    def root_folder(self) -> str | None:
        for folder in self.workspace_folders:
            folder_uri = folder.uri if folder.uri.endswith("/") else f"{folder.uri}/"
            if self.uri.startswith(folder_uri):
                return folder_uri
        return None

    def resolve_reference(self, reference: str, base: str | None = None) -> str:
        if reference.startswith("/"):
            root = self.root_folder()
            if root is not None:
                return urljoin(root, reference.lstrip("/"))
        return urljoin(base if base is not None else self.uri, reference)
