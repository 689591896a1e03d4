"""
Site owner profile

There is exactly one profile document, stored under the fixed id
``PROFILE_ID``. It is created on first access with every field zeroed and is
only ever updated in place afterwards.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Union

from pydantic import BaseModel
from pymongo.database import Database

from database import PROFILES, PUBLIC, utcnow
from errors import NotFound
from media import MediaAsset, MediaHost, discard
from schemas import Profile

logger = logging.getLogger(__name__)

PROFILE_ID = "site-profile"

PROFILE_IMAGE_FOLDER = "portfolio/profile"
COVER_IMAGE_FOLDER = "portfolio/cover"
CV_FOLDER = "portfolio/cv"


def _dump(value: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    return value.model_dump() if isinstance(value, BaseModel) else dict(value)


def _dump_all(values: Iterable[Union[BaseModel, Dict[str, Any]]]) -> list:
    return [_dump(v) for v in values]


class ProfileService:
    def __init__(self, db: Database, media: MediaHost):
        self.profiles = db[PROFILES]
        self.media = media

    def create_or_get_profile(self) -> Dict[str, Any]:
        now = utcnow()
        defaults = Profile(id=PROFILE_ID).model_dump(exclude={"id", "created_at", "updated_at"})
        return self.profiles.find_one_and_update(
            {"id": PROFILE_ID},
            {"$setOnInsert": {**defaults, "created_at": now, "updated_at": now}},
            upsert=True,
            projection=PUBLIC,
            return_document=True,
        )

    def get_profile(self) -> Dict[str, Any]:
        return self.create_or_get_profile()

    def get_published_profile(self) -> Dict[str, Any]:
        profile = self.profiles.find_one({"id": PROFILE_ID, "is_published": True}, PUBLIC)
        if not profile:
            raise NotFound("Profile not found or not published")
        return profile

    def _set(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        self.create_or_get_profile()
        changes["updated_at"] = utcnow()
        return self.profiles.find_one_and_update(
            {"id": PROFILE_ID},
            {"$set": changes},
            projection=PUBLIC,
            return_document=True,
        )

    # =======
    # Updates
    # =======
    def update_profile(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        changes = {k: _dump(v) if isinstance(v, BaseModel) else v for k, v in updates.items()}
        return self._set(changes)

    def update_social_links(self, links: Dict[str, str]) -> Dict[str, Any]:
        # only the given links change; the others keep their value
        return self._set({f"social_links.{name}": url for name, url in links.items()})

    def update_experience(self, experience: Dict[str, Any]) -> Dict[str, Any]:
        changes = {}
        for key, value in experience.items():
            if key == "companies":
                value = _dump_all(value)
            changes[f"experience.{key}"] = value
        return self._set(changes)

    def update_skills(self, skills: Iterable[Any]) -> Dict[str, Any]:
        return self._set({"skills": _dump_all(skills)})

    def update_technologies(self, technologies: Iterable[str]) -> Dict[str, Any]:
        return self._set({"technologies": list(technologies)})

    def update_education(self, education: Iterable[Any]) -> Dict[str, Any]:
        return self._set({"education": _dump_all(education)})

    def update_certifications(self, certifications: Iterable[Any]) -> Dict[str, Any]:
        return self._set({"certifications": _dump_all(certifications)})

    def toggle_publish_status(self, is_published: bool) -> Dict[str, Any]:
        logger.info("Profile %s", "published" if is_published else "unpublished")
        return self._set({"is_published": is_published})

    # =====
    # Media
    # =====
    def _swap_asset(self, url_field: str, id_field: str, asset: Optional[MediaAsset], delete: Callable[[str], Any]) -> Dict[str, Any]:
        # store the new reference before the old asset goes
        self.create_or_get_profile()
        changes = {
            url_field: asset.url if asset else "",
            id_field: asset.public_id if asset else "",
            "updated_at": utcnow(),
        }
        previous = self.profiles.find_one_and_update({"id": PROFILE_ID}, {"$set": changes}, projection=PUBLIC)
        discard(delete, previous.get(id_field, ""))
        return {**previous, **changes}

    def upload_profile_image(self, data: bytes) -> Dict[str, Any]:
        asset = self.media.upload_image(data, PROFILE_IMAGE_FOLDER)
        return self._swap_asset("profile_image", "profile_image_public_id", asset, self.media.delete_image)

    def upload_cover_image(self, data: bytes) -> Dict[str, Any]:
        asset = self.media.upload_image(data, COVER_IMAGE_FOLDER)
        return self._swap_asset("cover_image", "cover_image_public_id", asset, self.media.delete_image)

    def upload_cv(self, data: bytes) -> Dict[str, Any]:
        asset = self.media.upload_document(data, CV_FOLDER)
        return self._swap_asset("cv_url", "cv_public_id", asset, self.media.delete_document)

    def delete_profile_image(self) -> Dict[str, Any]:
        return self._swap_asset("profile_image", "profile_image_public_id", None, self.media.delete_image)

    def delete_cover_image(self) -> Dict[str, Any]:
        return self._swap_asset("cover_image", "cover_image_public_id", None, self.media.delete_image)

    def delete_cv(self) -> Dict[str, Any]:
        return self._swap_asset("cv_url", "cv_public_id", None, self.media.delete_document)

    def get_cv(self) -> bytes:
        profile = self.get_published_profile()
        if not profile.get("cv_url"):
            raise NotFound("CV not found")
        return self.media.fetch(profile["cv_url"])
