"""
Projection of relational jobs into search documents.

Responsibilities:
- Turn a Job, its Company and its full skill list into one Document.

Non-Responsibilities:
- No I/O; callers resolve the company and skills.
- No label normalization.

Invariant:
A Document is never built from partial foreign data. A missing or
mismatched company raises MissingCompanyError and the caller skips the job.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .database import Company, Job
from .errors import MissingCompanyError


@dataclass(frozen=True)
class Document:
    id: int
    title: str
    industry: str
    company_name: str
    description: str
    location: str
    salary_min: Optional[int]
    salary_max: Optional[int]
    requirements: str
    job_skills: List[str] = field(default_factory=list)

    @property
    def document_id(self) -> str:
        """Index document identifier; the job id mirrored as a string."""
        return str(self.id)

    def to_source(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_source(cls, source: Dict[str, Any]) -> "Document":
        return cls(
            id=int(source["id"]),
            title=source.get("title", ""),
            industry=source.get("industry", ""),
            company_name=source.get("company_name", ""),
            description=source.get("description", ""),
            location=source.get("location", ""),
            salary_min=source.get("salary_min"),
            salary_max=source.get("salary_max"),
            requirements=source.get("requirements", ""),
            job_skills=list(source.get("job_skills") or []),
        )


def build_document(job: Job, company: Optional[Company], skills: Iterable[str]) -> Document:
    """
    Build the search document for a job.

    Args:
        job: Canonical job row
        company: The job's company, as resolved by the caller
        skills: Every skill label declared for the job, in storage order

    Raises:
        MissingCompanyError: company is None or is not the job's company
    """
    if company is None or company.id != job.company_id:
        raise MissingCompanyError(job.id, job.company_id)

    return Document(
        id=job.id,
        title=job.title,
        industry=company.industry,
        company_name=company.name,
        description=job.description or "",
        location=job.location,
        salary_min=job.salary_min,
        salary_max=job.salary_max,
        requirements=job.requirements or "",
        job_skills=list(skills),
    )
