import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from database import PROJECTS, PUBLIC, create_document, get_documents, new_id, utcnow
from errors import Conflict, NotFound, ValidationFailed
from media import MediaHost, discard
from schemas import ProjectCreate

logger = logging.getLogger(__name__)

STATUSES = ("completed", "in-progress", "planned")
COVER_FOLDER = "portfolio/projects"
SCREENSHOT_FOLDER = "portfolio/projects/screenshots"
NEWEST_FIRST = [("created_at", DESCENDING)]


class ProjectService:
    def __init__(self, db: Database, media: MediaHost):
        self.projects = db[PROJECTS]
        self.db = db
        self.media = media

    def get_all_projects(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status is not None and status not in STATUSES:
            raise ValidationFailed("Invalid status", status=status)
        query = {"status": status} if status else {}
        return get_documents(self.db, PROJECTS, query, sort=NEWEST_FIRST)

    def get_featured_projects(self, limit: int = 3) -> List[Dict[str, Any]]:
        return get_documents(self.db, PROJECTS, {"is_featured": True}, limit=limit, sort=NEWEST_FIRST)

    def get_project_by_id(self, project_id: str) -> Dict[str, Any]:
        project = self.projects.find_one({"id": project_id}, PUBLIC)
        if not project:
            raise NotFound("Project not found", id=project_id)
        return project

    def create_project(self, data: ProjectCreate) -> Dict[str, Any]:
        doc = data.model_dump()
        doc.update(
            id=new_id("project_"),
            cover_image=data.cover_image or "",
            cover_image_public_id="",
            screenshots=[],
            screenshot_public_ids=[],
            project_date=data.project_date or utcnow(),
        )
        project = create_document(self.db, PROJECTS, doc)
        logger.info("Created project %s", project["id"])
        return project

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        # null means "leave unchanged"
        changes = {
            k: v for k, v in updates.items()
            if v is not None
            and k not in ("id", "_id", "created_at", "screenshots", "screenshot_public_ids", "cover_image_public_id")
        }
        changes["updated_at"] = utcnow()
        project = self.projects.find_one_and_update(
            {"id": project_id},
            {"$set": changes},
            projection=PUBLIC,
            return_document=True,
        )
        if not project:
            raise NotFound("Project not found", id=project_id)
        return project

    def delete_project(self, project_id: str) -> None:
        project = self.projects.find_one_and_delete({"id": project_id})
        if not project:
            raise NotFound("Project not found", id=project_id)
        logger.info("Deleted project %s", project_id)
        discard(self.media.delete_image, project.get("cover_image_public_id", ""))
        for public_id in project.get("screenshot_public_ids", []):
            discard(self.media.delete_image, public_id)

    # ======
    # Images
    # ======
    def upload_cover_image(self, project_id: str, data: bytes) -> Dict[str, Any]:
        self.get_project_by_id(project_id)
        asset = self.media.upload_image(data, COVER_FOLDER)
        changes = {"cover_image": asset.url, "cover_image_public_id": asset.public_id, "updated_at": utcnow()}
        previous = self.projects.find_one_and_update({"id": project_id}, {"$set": changes}, projection=PUBLIC)
        if not previous:
            # deleted while we were uploading
            discard(self.media.delete_image, asset.public_id)
            raise NotFound("Project not found", id=project_id)
        discard(self.media.delete_image, previous.get("cover_image_public_id", ""))
        return {**previous, **changes}

    def delete_cover_image(self, project_id: str) -> Dict[str, Any]:
        changes = {"cover_image": "", "cover_image_public_id": "", "updated_at": utcnow()}
        previous = self.projects.find_one_and_update({"id": project_id}, {"$set": changes}, projection=PUBLIC)
        if not previous:
            raise NotFound("Project not found", id=project_id)
        discard(self.media.delete_image, previous.get("cover_image_public_id", ""))
        return {**previous, **changes}

    def upload_screenshot(self, project_id: str, data: bytes) -> Dict[str, Any]:
        self.get_project_by_id(project_id)
        asset = self.media.upload_image(data, SCREENSHOT_FOLDER)
        project = self.projects.find_one_and_update(
            {"id": project_id},
            {
                "$push": {"screenshots": asset.url, "screenshot_public_ids": asset.public_id},
                "$set": {"updated_at": utcnow()},
            },
            projection=PUBLIC,
            return_document=True,
        )
        if not project:
            discard(self.media.delete_image, asset.public_id)
            raise NotFound("Project not found", id=project_id)
        return project

    def delete_screenshot(self, project_id: str, screenshot_url: str) -> Dict[str, Any]:
        """Remove the first screenshot with this URL.

        Only one entry goes even when the same URL was added twice. The write
        is conditional on the array being unchanged since it was read.
        """
        project = self.get_project_by_id(project_id)
        screenshots = project.get("screenshots", [])
        if screenshot_url not in screenshots:
            raise NotFound("Screenshot not found", id=project_id, url=screenshot_url)

        index = screenshots.index(screenshot_url)
        public_ids = project.get("screenshot_public_ids", [])
        public_id = public_ids[index] if index < len(public_ids) else ""

        changes = {
            "screenshots": screenshots[:index] + screenshots[index + 1:],
            "screenshot_public_ids": public_ids[:index] + public_ids[index + 1:],
            "updated_at": utcnow(),
        }
        res = self.projects.update_one({"id": project_id, "screenshots": screenshots}, {"$set": changes})
        if res.matched_count == 0:
            raise Conflict("Project was modified concurrently, retry", id=project_id)
        discard(self.media.delete_image, public_id)
        return self.get_project_by_id(project_id)

    def get_projects_stats(self) -> Dict[str, int]:
        count = self.projects.count_documents
        return {
            "total": count({}),
            "completed": count({"status": "completed"}),
            "in_progress": count({"status": "in-progress"}),
            "planned": count({"status": "planned"}),
            "featured": count({"is_featured": True}),
            "beginner": count({"complexity": "beginner"}),
            "intermediate": count({"complexity": "intermediate"}),
            "advanced": count({"complexity": "advanced"}),
        }
