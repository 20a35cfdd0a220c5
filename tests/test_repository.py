"""
Tests for the jobs repository.
"""

import warnings
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SAWarning

from jobindex.errors import StoreUnavailableError, TransientError
from jobindex.repository import JobRepository


class TestReads:
    """Test paged reads."""

    def test_list_jobs_pages_in_id_order(self, repository, catalog):
        first = repository.list_jobs(limit=2, offset=0)
        second = repository.list_jobs(limit=2, offset=2)
        third = repository.list_jobs(limit=2, offset=4)
        rest = repository.list_jobs(limit=2, offset=6)

        ids = [j.id for j in first + second + third]
        assert ids == sorted(j.id for j in catalog)
        assert rest == []

    def test_iter_jobs_reads_everything(self, repository, catalog):
        assert [j.id for j in repository.iter_jobs(page_size=2)] == [j.id for j in catalog]

    def test_list_jobs_by_company(self, repository, catalog):
        globex_jobs = repository.list_jobs_by_company(catalog[2].company_id, limit=10, offset=0)
        assert [j.title for j in globex_jobs] == ["Quant Developer", "Risk Analyst"]

    def test_get_job_and_company(self, repository, catalog):
        job = repository.get_job(catalog[0].id)
        company = repository.get_company(job.company_id)

        assert job.title == "Senior Python Developer"
        assert company.name == "Acme"
        assert repository.get_job(9999) is None
        assert repository.get_company(None) is None

    def test_skill_labels_in_storage_order(self, repository, catalog):
        quant = catalog[2]
        assert list(repository.iter_skill_labels(quant.id, page_size=1)) == ["Python", "C++"]

    def test_list_skills_by_job_id_pages(self, repository, catalog):
        rows = repository.list_skills_by_job_id(catalog[0].id, limit=1, offset=1)
        assert [r.skill for r in rows] == ["SQL"]

    def test_list_job_ids_by_skill(self, repository, skill_jobs):
        job1, job2, _ = skill_jobs
        repository.add_job_skills(job1.id, ["Go"])

        assert repository.list_job_ids_by_skill("Go", limit=10, offset=0) == [job1.id, job2.id]

    def test_list_job_ids_by_skill_emits_no_warnings(self, repository, skill_jobs):
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            ids = repository.list_job_ids_by_skill("SQL", limit=10, offset=0)

        assert ids == [skill_jobs[0].id, skill_jobs[2].id]

    def test_list_job_ids_by_skills(self, repository, skill_jobs):
        job1, job2, job3 = skill_jobs

        rows = repository.list_job_ids_by_skills(["Go", "SQL"], limit=10, offset=0)

        assert rows == [(job1.id, 2), (job2.id, 1), (job3.id, 1)]
        assert repository.list_job_ids_by_skills([], limit=10, offset=0) == []


class TestWrites:
    """Test transactional writes."""

    def test_create_job_with_skills(self, repository):
        company = repository.create_company("Initech", "Software", "Austin")
        job = repository.create_job(company.id, "Printer Tech", "Austin", skills=["Hardware"])

        assert job.id is not None
        assert job.description == ""
        assert list(repository.iter_skill_labels(job.id)) == ["Hardware"]

    def test_salary_range_constraint(self, repository):
        company = repository.create_company("Initech", "Software", "Austin")

        with pytest.raises(IntegrityError):
            repository.create_job(company.id, "Bad Range", "Austin", salary_min=90000, salary_max=10000)

        # Session is usable again after the rollback.
        job = repository.create_job(company.id, "Good Range", "Austin", salary_min=1, salary_max=2)
        assert job.id is not None

    def test_unique_company_name(self, repository):
        repository.create_company("Initech", "Software", "Austin")
        with pytest.raises(IntegrityError):
            repository.create_company("Initech", "Finance", "Dallas")

    def test_delete_job_removes_skills(self, repository, skill_jobs):
        job_id = skill_jobs[0].id

        assert repository.delete_job(job_id) is True
        assert repository.get_job(job_id) is None
        assert repository.list_skills_by_job_id(job_id, limit=10, offset=0) == []
        assert repository.delete_job(job_id) is False


class TestErrors:
    """Test translation of driver failures."""

    def test_operational_error_is_transient(self):
        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
        repository = JobRepository(session)

        with pytest.raises(StoreUnavailableError) as exc_info:
            repository.get_job(1)

        assert isinstance(exc_info.value, TransientError)
        assert exc_info.value.retryable
        assert "database is locked" in str(exc_info.value)

    def test_delete_job_translates_operational_error(self):
        session = MagicMock()
        session.get.return_value = MagicMock()
        session.commit.side_effect = OperationalError("DELETE", {}, Exception("disk I/O error"))
        repository = JobRepository(session)

        with pytest.raises(StoreUnavailableError, match="disk I/O error"):
            repository.delete_job(1)

        session.rollback.assert_called_once()
