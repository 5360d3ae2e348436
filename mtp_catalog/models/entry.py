"""Pydantic models for entries reported by a connected device."""

from pydantic import BaseModel, Field

# MTP format code for directories ("association").
FORMAT_ASSOCIATION = 0x3001


class RootEntry(BaseModel):
    """A storage unit reported by the device, exposed as a root document."""

    device_id: int = Field(default=..., description="Device the storage belongs to")
    storage_id: int = Field(default=..., description="Session-scoped MTP storage ID")
    device_name: str = Field(default="", description="Human readable device name")
    description: str = Field(default="", description="Storage description reported by the device")
    volume_identifier: str = Field(default="", description="Volume identifier of the storage")
    free_space: int = Field(default=0, ge=0, description="Free space in bytes")
    max_capacity: int = Field(default=0, ge=0, description="Capacity in bytes")

    @property
    def root_name(self) -> str:
        """Display name for the root: device name followed by the storage description."""
        name = f"{self.device_name} {self.description}".strip()
        return name or self.volume_identifier

    model_config = {
        "json_schema_extra": {
            "example": {
                "device_id": 1,
                "storage_id": 65537,
                "device_name": "Pixel",
                "description": "Internal shared storage",
                "volume_identifier": "",
                "free_space": 1024,
                "max_capacity": 4096,
            }
        }
    }


class ObjectEntry(BaseModel):
    """An object (file or directory) reported under a parent document."""

    storage_id: int = Field(default=..., description="Storage the object lives on")
    object_handle: int | None = Field(
        default=None, description="Session-scoped MTP object handle"
    )
    name: str = Field(default=..., description="Object file name")
    format: int = Field(default=0, description="MTP object format code")
    protection_status: int = Field(default=0, description="0 when the object is writable")
    thumb_compressed_size: int = Field(default=0, ge=0, description="Thumbnail size in bytes")
    compressed_size: int = Field(default=0, ge=0, description="Object size in bytes")
    date_modified: int = Field(
        default=0, ge=0, description="Modification time in epoch seconds, 0 if unknown"
    )

    @property
    def is_directory(self) -> bool:
        return self.format == FORMAT_ASSOCIATION

    model_config = {
        "json_schema_extra": {
            "example": {
                "storage_id": 65537,
                "object_handle": 42,
                "name": "IMG_0001.jpg",
                "format": 0x3801,
                "protection_status": 0,
                "thumb_compressed_size": 2048,
                "compressed_size": 123456,
                "date_modified": 1700000000,
            }
        }
    }
