"""
Artifact metadata returned by the server's analysis API.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

SHA_256 = "SHA-256"


class ResourceMetadata(BaseModel):
    """Common description of a downloadable artifact"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    filename: str
    sha256: str
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")

    @property
    def hash_algorithm(self) -> str:
        return SHA_256

    def has_download_url(self) -> bool:
        return bool(self.download_url and self.download_url.strip())


class JreMetadata(ResourceMetadata):
    """A JRE archive; ``java_path`` is the executable relative to the extracted root"""

    id: str
    java_path: str = Field(alias="javaPath")


class EngineMetadata(ResourceMetadata):
    """The scanner engine jar"""
    pass


_JRE_LIST = TypeAdapter(List[JreMetadata])


def parse_jre_list(payload: str) -> List[JreMetadata]:
    return _JRE_LIST.validate_json(payload)


def parse_engine(payload: str) -> EngineMetadata:
    return EngineMetadata.model_validate_json(payload)
