from pydantic import BaseModel


class ManifestEntry(BaseModel):
    """A processed output staged on local disk."""
    name: str
    path: str


class ProcessedFile(BaseModel):
    name: str
    data: str
