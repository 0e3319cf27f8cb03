"""Activity events recorded through the backend's ``record_learning_activity`` RPC.

Each event kind declares its own fields; ``activity_type`` is the tag. Fields
with a dedicated RPC parameter are sent as such, the rest of the variant's
declared fields form the metadata payload.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field, RootModel


RPC_COLUMN_FIELDS = {
    "activity_type",
    "class_id",
    "lesson_id",
    "duration_seconds",
    "completion_percentage",
    "score",
}


class _ActivityEventBase(BaseModel):
    """Fields shared by every activity event."""
    class_id: str = Field(min_length=1)
    lesson_id: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)

    class Config:
        frozen = True
        extra = "forbid"

    def metadata(self) -> Dict[str, Any]:
        """Variant specific fields, without the ones sent as RPC columns."""
        return self.model_dump(exclude=RPC_COLUMN_FIELDS, exclude_none=True)

    def to_rpc_params(self) -> Dict[str, Any]:
        """Render the parameters of the ``record_learning_activity`` RPC."""
        return {
            "p_class_id": self.class_id,
            "p_lesson_id": self.lesson_id,
            "p_activity_type": self.activity_type,
            "p_duration_seconds": self.duration_seconds,
            "p_completion_percentage": getattr(self, "completion_percentage", None),
            "p_score": getattr(self, "score", None),
            "p_metadata": self.metadata() or None,
        }


class VideoWatch(_ActivityEventBase):
    activity_type: Literal["video_watch"] = "video_watch"
    video_id: str
    video_title: Optional[str] = None
    watched_seconds: Optional[int] = Field(default=None, ge=0)


class LessonView(_ActivityEventBase):
    activity_type: Literal["lesson_view"] = "lesson_view"
    lesson_id: str
    completion_percentage: Optional[float] = Field(default=None, ge=0, le=100)


class QuizAttempt(_ActivityEventBase):
    activity_type: Literal["quiz_attempt"] = "quiz_attempt"
    quiz_id: str
    score: float = Field(ge=0, le=100)
    attempt_number: Optional[int] = Field(default=None, ge=1)


class AssignmentSubmission(_ActivityEventBase):
    activity_type: Literal["assignment_submission"] = "assignment_submission"
    assignment_id: str
    file_count: Optional[int] = Field(default=None, ge=0)
    late: Optional[bool] = None


class DiscussionPost(_ActivityEventBase):
    activity_type: Literal["discussion_post"] = "discussion_post"
    thread_id: str
    word_count: Optional[int] = Field(default=None, ge=0)


ActivityEvent = Annotated[
    Union[VideoWatch, LessonView, QuizAttempt, AssignmentSubmission, DiscussionPost],
    Field(discriminator="activity_type"),
]


class ActivityEventPayload(RootModel[ActivityEvent]):
    """Request body carrying one ActivityEvent, dispatched on ``activity_type``."""
