import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load .env once on import
load_dotenv()


class ConfigError(RuntimeError):
    pass


class Settings(BaseModel):
    mongodb_uri: str
    database_name: str = "portfolio"
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    # Seed admin (optional)
    admin_username: Optional[str] = None
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_phone: str = "0000000000"
    cookie_secure: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        uri = os.getenv("MONGODB_URI")
        if not uri:
            raise ConfigError("MONGODB_URI is not set")
        return cls(
            mongodb_uri=uri,
            database_name=os.getenv("DATABASE_NAME", "portfolio"),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
            admin_username=os.getenv("ADMIN_USERNAME"),
            admin_email=os.getenv("ADMIN_EMAIL"),
            admin_password=os.getenv("ADMIN_PASSWORD"),
            admin_phone=os.getenv("ADMIN_PHONE", "0000000000"),
            cookie_secure=os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes"),
        )

    @property
    def seed_admin(self) -> bool:
        return bool(self.admin_username and self.admin_email and self.admin_password)
