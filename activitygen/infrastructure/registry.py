from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import structlog

from ..generation.errors import InvalidInputError
from ..generation.ports import MountEntry, Namespace
from ..shared.settings import settings

log = structlog.get_logger()


class NamespaceIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    path: str = ""


class MountIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    namespace_id: str = ""
    accessor: str = Field(min_length=1)
    path: str


class RegistryFile(BaseModel):
    namespaces: List[NamespaceIn] = Field(default_factory=list)
    mounts: List[MountIn] = Field(default_factory=list)


def _normalize(path: str) -> str:
    path = path.strip().lstrip("/")
    if path and not path.endswith("/"):
        path += "/"
    return path


class InMemoryRegistry:
    """
    Namespaces and the mounts inside them. Mount order is preserved, so
    "the first mount of a namespace" is stable.
    """

    def __init__(self, namespaces: List[Namespace], mounts: List[MountEntry]) -> None:
        self._namespaces = {ns.id: ns for ns in namespaces}
        self._mounts = [
            MountEntry(namespace_id=m.namespace_id, accessor=m.accessor, path=_normalize(m.path))
            for m in mounts
        ]

    @classmethod
    def default(cls) -> "InMemoryRegistry":
        root = settings.root_namespace_id
        return cls(
            namespaces=[Namespace(id=root, path="")],
            mounts=[
                MountEntry(namespace_id=root, accessor="auth_token_root", path="auth/token/"),
                MountEntry(namespace_id=root, accessor="kv_root", path="secret/"),
            ],
        )

    @classmethod
    def from_model(cls, data: RegistryFile) -> "InMemoryRegistry":
        """
        Expected shape::

            {"namespaces": [{"id": "ns1", "path": "ns1/"}],
             "mounts": [{"namespace_id": "ns1", "accessor": "auth_ns1", "path": "auth/userpass/"}]}

        The root namespace is always present.
        """
        root = settings.root_namespace_id
        namespaces = [Namespace(id=root, path="")]
        for ns in data.namespaces:
            if ns.id != root:
                namespaces.append(Namespace(id=ns.id, path=ns.path))
        mounts = [
            MountEntry(namespace_id=m.namespace_id or root, accessor=m.accessor, path=m.path)
            for m in data.mounts
        ]
        return cls(namespaces, mounts)

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryRegistry":
        try:
            data = RegistryFile.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise InvalidInputError(f"Invalid registry file {path}: {e}") from e
        registry = cls.from_model(data)
        log.info("registry_loaded", path=str(path), namespaces=len(registry._namespaces), mounts=len(registry._mounts))
        return registry

    @classmethod
    def from_settings(cls) -> "InMemoryRegistry":
        if settings.registry_path:
            return cls.from_file(Path(settings.registry_path))
        return cls.default()

    def namespace_by_id(self, namespace_id: str) -> Optional[Namespace]:
        return self._namespaces.get(namespace_id)

    def list_mounts(self) -> List[MountEntry]:
        return list(self._mounts)

    def matching_mount(self, namespace: Namespace, path: str) -> Optional[MountEntry]:
        """Longest mount path within ``namespace`` that prefixes ``path``."""
        wanted = _normalize(path)
        best = None
        for m in self._mounts:
            if m.namespace_id != namespace.id or not wanted.startswith(m.path):
                continue
            if best is None or len(m.path) > len(best.path):
                best = m
        return best
