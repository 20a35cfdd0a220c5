"""
Pytest configuration and shared fixtures.
"""

import pytest

from fakes import FakeIndexClient
from jobindex.config import Settings
from jobindex.database import get_session, init_database
from jobindex.repository import JobRepository


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "jobs.db"
    init_database(path)
    return path


@pytest.fixture
def db_session(db_path):
    """Create a temporary database and return a session."""
    session = get_session(db_path)
    yield session
    session.close()


@pytest.fixture
def repository(db_session) -> JobRepository:
    return JobRepository(db_session)


@pytest.fixture
def settings(db_path) -> Settings:
    return Settings(db_path=db_path, index_name="jobs-test", num_workers=3, batch_size=2, page_size=2)


@pytest.fixture
def fake_client() -> FakeIndexClient:
    return FakeIndexClient()


@pytest.fixture
def skill_jobs(repository):
    """Three jobs with skills {Go, SQL}, {Go, Rust} and {SQL}."""
    company = repository.create_company("Acme", "Software", "Berlin")
    job1 = repository.create_job(company.id, "Backend Engineer", "Berlin", skills=["Go", "SQL"])
    job2 = repository.create_job(company.id, "Systems Engineer", "Remote", skills=["Go", "Rust"])
    job3 = repository.create_job(company.id, "Data Analyst", "Berlin", skills=["SQL"])
    return job1, job2, job3


@pytest.fixture
def catalog(repository):
    """Two companies and five jobs with varied salaries and locations."""
    acme = repository.create_company("Acme", "Software", "Berlin")
    globex = repository.create_company("Globex", "Finance", "London")
    jobs = [
        repository.create_job(
            acme.id, "Senior Python Developer", "Berlin, Germany",
            description="Build data pipelines in Python.",
            requirements="5 years of Python",
            salary_min=60000, salary_max=90000, skills=["Python", "SQL"],
        ),
        repository.create_job(
            acme.id, "Junior Python Developer", "Remote",
            description="Maintain internal tools.",
            requirements="Some Python",
            salary_min=20000, salary_max=40000, skills=["Python"],
        ),
        repository.create_job(
            globex.id, "Quant Developer", "London, UK",
            description="Pricing models in Python and C++.",
            requirements="Statistics",
            salary_min=90000, salary_max=150000, skills=["Python", "C++"],
        ),
        repository.create_job(
            globex.id, "Risk Analyst", "London, UK",
            description="Risk reporting.",
            requirements="Excel",
            salary_min=45000, salary_max=55000, skills=["Excel"],
        ),
        repository.create_job(
            acme.id, "Go Developer", "Berlin, Germany",
            description="Services in Go.",
            requirements="Go",
            skills=["Go"],
        ),
    ]
    return jobs
