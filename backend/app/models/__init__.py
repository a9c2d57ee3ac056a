# Namespace for ORM models.
from .blog_post import BlogPost
from .job import GenerationJob, JobKind, JobState
from .progress import BlogGenerationProgress

__all__ = ["BlogPost", "GenerationJob", "JobKind", "JobState", "BlogGenerationProgress"]
