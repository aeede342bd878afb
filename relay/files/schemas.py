from pydantic import BaseModel


class UploadOut(BaseModel):
    hash: str
    filename: str
    size: int


class FileInfo(BaseModel):
    filename: str
    size: int


class CheckOut(BaseModel):
    allowed: bool
    file_info: FileInfo
