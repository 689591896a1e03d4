"""
Database Schemas for the Portfolio CMS

Each stored model maps to one MongoDB collection:
- User -> "users"
- Session -> "sessions"
- Post -> "posts"
- Project -> "projects"
- Profile -> "profiles" (a single document)

The *Create / *Update models are the request bodies the admin API accepts.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

Gender = Literal["male", "female", "other"]
ProjectStatus = Literal["completed", "in-progress", "planned"]
Complexity = Literal["beginner", "intermediate", "advanced"]
SkillLevel = Literal["beginner", "intermediate", "advanced", "expert"]


# ====
# Auth
# ====
class User(BaseModel):
    id: str
    username: str
    email: str
    phone_number: str
    gender: Gender
    password_hash: str
    is_admin: bool = False
    created_at: Optional[datetime] = None


class UserPublic(BaseModel):
    id: str
    username: str
    email: str
    phone_number: str
    gender: Gender
    is_admin: bool = False
    created_at: Optional[datetime] = None


class Session(BaseModel):
    token: str = Field(..., description="Opaque bearer token")
    user_id: str = Field(..., description="Reference to users.id")
    created_at: Optional[datetime] = None


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone_number: str = Field(..., pattern=r"^\d{10}$", description="Exactly 10 digits")
    gender: Gender
    password: str = Field(..., min_length=6)

    @field_validator("username", "phone_number", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1)


# =====
# Posts
# =====
def _clean_tags(tags: List[str]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class Post(BaseModel):
    id: str
    title: str
    description: str
    content: str
    excerpt: str
    cover_image: str = ""
    category: str = "General"
    tags: List[str] = []
    is_published: bool = False
    is_featured: bool = False
    author_id: str = "admin"
    author_name: str = "Admin"
    views: int = 0
    likes: int = 0
    comments: int = 0
    reading_time: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = []
    is_published: bool = False
    is_featured: bool = False
    author_id: Optional[str] = None
    author_name: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v)


class PostUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None
    is_featured: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v) if v is not None else v


# ========
# Projects
# ========
class Project(BaseModel):
    id: str
    title: str
    description: str
    short_description: str
    technologies: List[str] = []
    github_url: Optional[str] = None
    project_url: Optional[str] = None
    cover_image: str = ""
    cover_image_public_id: str = ""
    screenshots: List[str] = []
    # parallel to screenshots; entry i is the media id of screenshots[i]
    screenshot_public_ids: List[str] = []
    is_featured: bool = False
    status: ProjectStatus = "completed"
    complexity: Complexity = "intermediate"
    featured_technologies: List[str] = []
    project_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    short_description: str = Field(..., min_length=1)
    technologies: List[str] = Field(..., min_length=1)
    github_url: Optional[str] = None
    project_url: Optional[str] = None
    cover_image: Optional[str] = None
    is_featured: bool = False
    status: ProjectStatus = "completed"
    complexity: Complexity = "intermediate"
    featured_technologies: List[str] = []
    project_date: Optional[datetime] = None


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    technologies: Optional[List[str]] = None
    github_url: Optional[str] = None
    project_url: Optional[str] = None
    is_featured: Optional[bool] = None
    status: Optional[ProjectStatus] = None
    complexity: Optional[Complexity] = None
    featured_technologies: Optional[List[str]] = None
    project_date: Optional[datetime] = None


# =======
# Profile
# =======
class SocialLinks(BaseModel):
    github: str = ""
    linkedin: str = ""
    twitter: str = ""
    facebook: str = ""
    instagram: str = ""
    website: str = ""
    youtube: str = ""
    dribbble: str = ""
    behance: str = ""
    medium: str = ""
    stackoverflow: str = ""


class Company(BaseModel):
    name: str
    position: str = ""
    duration: str = ""
    description: str = ""


class Experience(BaseModel):
    years: int = 0
    title: str = ""
    description: str = ""
    projects_completed: int = 0
    clients_count: int = 0
    companies: List[Company] = []


class ExperienceUpdate(BaseModel):
    years: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    projects_completed: Optional[int] = None
    clients_count: Optional[int] = None
    companies: Optional[List[Company]] = None


class Skill(BaseModel):
    category: str
    items: List[str] = []
    level: SkillLevel = "intermediate"


class Education(BaseModel):
    degree: str
    institution: str
    year: str = ""
    description: str = ""


class Certification(BaseModel):
    name: str
    issuer: str = ""
    year: str = ""
    url: str = ""


class ProfileStats(BaseModel):
    posts_count: int = 0
    projects_count: int = 0
    services_count: int = 0
    views_count: int = 0
    github_repos: int = 0
    github_stars: int = 0


class Profile(BaseModel):
    id: str
    full_name: str = ""
    email: str = ""
    phone: str = ""
    title: str = ""
    description: str = ""
    bio: str = ""
    profile_image: str = ""
    profile_image_public_id: str = ""
    cover_image: str = ""
    cover_image_public_id: str = ""
    cv_url: str = ""
    cv_public_id: str = ""
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    experience: Experience = Field(default_factory=Experience)
    technologies: List[str] = []
    skills: List[Skill] = []
    education: List[Education] = []
    certifications: List[Certification] = []
    stats: ProfileStats = Field(default_factory=ProfileStats)
    location: str = ""
    availability: bool = True
    hourly_rate: Optional[float] = None
    contact_email: str = ""
    is_published: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    availability: Optional[bool] = None
    hourly_rate: Optional[float] = None
    contact_email: Optional[str] = None
    stats: Optional[ProfileStats] = None


class SocialLinksUpdate(BaseModel):
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    website: Optional[str] = None
    youtube: Optional[str] = None
    dribbble: Optional[str] = None
    behance: Optional[str] = None
    medium: Optional[str] = None
    stackoverflow: Optional[str] = None


class PublishRequest(BaseModel):
    is_published: bool


class SkillsUpdate(BaseModel):
    skills: List[Skill]


class TechnologiesUpdate(BaseModel):
    technologies: List[str]


class EducationUpdate(BaseModel):
    education: List[Education]


class CertificationsUpdate(BaseModel):
    certifications: List[Certification]
