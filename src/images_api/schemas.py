####################################
# --- Request/response schemas --- #
####################################

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class FilePathsResponse(BaseModel):
    """Response model for `POST /upload` and `GET /images`."""
    file_paths: List[str] = Field(
        alias="filePaths",
        description="Public paths of the images, in storage order or newest first.",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "filePaths": ["/uploads/1718000000000-000001.png", "/uploads/1717999999000-000000.jpg"]
            }
        },
    )


class MessageResponse(BaseModel):
    """Error body returned for 400 and 500 responses."""
    message: str = Field(
        description="Human-readable reason.",
        json_schema_extra={"example": "No file selected"},
    )


class HealthResponse(BaseModel):
    """Response model for `GET /health`."""
    status: str
    components: dict
    ready: bool
