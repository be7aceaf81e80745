from pydantic import BaseModel, Field, validator
from typing import List, Optional
from enum import Enum

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"

# ==================== COURSE CONTENT ====================

class LectureIn(BaseModel):
    lecture_id: Optional[str] = None  # kept on update so completions stay valid
    title: str
    content: str = ""
    video_url: Optional[str] = None
    duration: Optional[float] = None

class ChapterIn(BaseModel):
    chapter_id: Optional[str] = None
    title: str
    lectures: List[LectureIn] = []

class SectionIn(BaseModel):
    section_id: Optional[str] = None
    title: str
    chapters: List[ChapterIn] = []

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = None
    instructor: Optional[str] = None
    duration: str = "8 weeks"
    level: CourseLevel = CourseLevel.BEGINNER
    is_public: bool = False
    sections: List[SectionIn] = []

    class Config:
        use_enum_values = True

    @validator("title")
    def strip_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    instructor: Optional[str] = None
    duration: Optional[str] = None
    level: Optional[CourseLevel] = None
    is_public: Optional[bool] = None
    sections: Optional[List[SectionIn]] = None

    class Config:
        use_enum_values = True

# ==================== ENROLLMENT MODELS ====================

class EnrollmentCreate(BaseModel):
    course_id: str = Field(..., min_length=1)

class LectureCompletionUpdate(BaseModel):
    completed: bool
    expected_version: Optional[int] = None
