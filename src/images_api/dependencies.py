from fastapi import Request

from database.base import ImageStore
from images_api.config.settings import Settings
from images_api.intake import UploadIntake


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_intake(request: Request) -> UploadIntake:
    return request.app.state.upload_intake


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.image_store
