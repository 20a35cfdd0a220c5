"""
Jobs Repository.

Responsibilities:
- Read access to jobs, companies and job skills for the indexing and
  matching paths.
- Transaction-safe writes for seeding and maintenance.

Non-Responsibilities:
- No projection logic.
- No ranking beyond the overlap aggregate the store computes.
- No pagination validation (callers validate before issuing I/O).

Invariant:
Every paged read returns a bounded page; callers page until an empty
page comes back.
"""

import functools
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import distinct, func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .database import Company, Job, JobSkill
from .errors import StoreUnavailableError


def _translate_errors(func_):
    """Surface driver-level connectivity failures as retryable errors."""
    @functools.wraps(func_)
    def wrapper(*args, **kwargs):
        try:
            return func_(*args, **kwargs)
        except OperationalError as e:
            raise StoreUnavailableError(f"Relational store unavailable: {e.orig}") from e
    return wrapper


class JobRepository:
    def __init__(self, session: Session):
        self.session = session

    # Reads

    @_translate_errors
    def get_job(self, job_id: int) -> Optional[Job]:
        return self.session.get(Job, job_id)

    @_translate_errors
    def get_company(self, company_id: Optional[int]) -> Optional[Company]:
        if company_id is None:
            return None
        return self.session.get(Company, company_id)

    @_translate_errors
    def list_jobs(self, limit: int, offset: int) -> List[Job]:
        return (
            self.session.query(Job)
            .order_by(Job.id)
            .limit(limit)
            .offset(offset)
            .all()
        )

    @_translate_errors
    def list_jobs_by_company(self, company_id: int, limit: int, offset: int) -> List[Job]:
        return (
            self.session.query(Job)
            .filter_by(company_id=company_id)
            .order_by(Job.id)
            .limit(limit)
            .offset(offset)
            .all()
        )

    @_translate_errors
    def list_skills_by_job_id(self, job_id: int, limit: int, offset: int) -> List[JobSkill]:
        return (
            self.session.query(JobSkill)
            .filter_by(job_id=job_id)
            .order_by(JobSkill.id)
            .limit(limit)
            .offset(offset)
            .all()
        )

    @_translate_errors
    def list_job_ids_by_skill(self, skill: str, limit: int, offset: int) -> List[int]:
        rows = (
            self.session.query(JobSkill.job_id)
            .filter(JobSkill.skill == skill)
            .distinct()
            .order_by(JobSkill.job_id)
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [job_id for (job_id,) in rows]

    @_translate_errors
    def list_job_ids_by_skills(
        self, skills: Sequence[str], limit: int, offset: int
    ) -> List[Tuple[int, int]]:
        """
        Return (job_id, overlap) pairs for jobs declaring any of the skills.

        Overlap counts distinct matching labels, so duplicate job_skills rows
        never inflate it. Ordered by overlap descending, then job id.
        """
        if not skills:
            return []
        overlap = func.count(distinct(JobSkill.skill)).label("overlap")
        rows = (
            self.session.query(JobSkill.job_id, overlap)
            .filter(JobSkill.skill.in_(list(skills)))
            .group_by(JobSkill.job_id)
            .order_by(overlap.desc(), JobSkill.job_id.asc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [(job_id, count) for job_id, count in rows]

    def iter_jobs(self, page_size: int = 100) -> Iterator[Job]:
        """Yield every job in id order, one relational page at a time."""
        offset = 0
        while True:
            page = self.list_jobs(limit=page_size, offset=offset)
            if not page:
                return
            yield from page
            offset += len(page)

    def iter_skill_labels(self, job_id: int, page_size: int = 100) -> Iterator[str]:
        offset = 0
        while True:
            page = self.list_skills_by_job_id(job_id, limit=page_size, offset=offset)
            if not page:
                return
            for row in page:
                yield row.skill
            offset += len(page)

    # Writes

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def create_company(self, name: str, industry: str, location: str) -> Company:
        company = Company(name=name, industry=industry, location=location)
        with self._transaction():
            self.session.add(company)
        return company

    def create_job(
        self,
        company_id: int,
        title: str,
        location: str,
        description: str = "",
        requirements: str = "",
        salary_min: Optional[int] = None,
        salary_max: Optional[int] = None,
        skills: Iterable[str] = (),
    ) -> Job:
        job = Job(
            company_id=company_id,
            title=title,
            location=location,
            description=description,
            requirements=requirements,
            salary_min=salary_min,
            salary_max=salary_max,
        )
        with self._transaction():
            self.session.add(job)
            self.session.flush()
            for skill in skills:
                self.session.add(JobSkill(job_id=job.id, skill=skill))
        return job

    def add_job_skills(self, job_id: int, skills: Iterable[str]) -> List[JobSkill]:
        rows = [JobSkill(job_id=job_id, skill=skill) for skill in skills]
        with self._transaction():
            self.session.add_all(rows)
        return rows

    @_translate_errors
    def delete_job(self, job_id: int) -> bool:
        """Delete a job and its skill rows. Returns False if it did not exist."""
        job = self.session.get(Job, job_id)
        if job is None:
            return False
        with self._transaction():
            self.session.query(JobSkill).filter_by(job_id=job_id).delete()
            self.session.delete(job)
        return True
