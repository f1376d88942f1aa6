from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass, field

from .errors import ConfigError
from .holidays import HolidayCalendar
from .utils import get_full_day_hours

logger = logging.getLogger(__name__)

MANAGER_ROLE = "Manager"
EMPLOYEE_ROLE = "Employee"


@dataclass
class Employee:
    id: str
    name: str
    role: str = EMPLOYEE_ROLE  # Employee or Manager
    email: str | None = None

    @property
    def is_manager(self) -> bool:
        return self.role == MANAGER_ROLE


@dataclass
class Job:
    code: str
    name: str
    id: str = ""
    is_active: bool = True


@dataclass
class Policy:
    full_day_hours: float = 8.0
    block_submission_on_errors: bool = True
    reset_status_on_unseen_month: bool = False
    exempt_absences_on_non_workdays: bool = False


@dataclass
class CompanyConfig:
    name: str
    employees: list[Employee] = field(default_factory=list)
    jobs: list[Job] = field(default_factory=list)
    policy: Policy = field(default_factory=Policy)
    holiday_rules: list[str] | None = None

    def find_employee(self, value: str) -> Employee | None:
        v = (value or "").strip().lower()
        for e in self.employees:
            if e.id.strip().lower() == v or e.name.strip().lower() == v:
                return e
        return None

    def employee_names(self) -> dict[str, str]:
        return {e.id: e.name for e in self.employees}

    def active_jobs(self) -> list[Job]:
        return [j for j in self.jobs if j.is_active]

    def find_job(self, value: str) -> Job | None:
        v = (value or "").strip().lower()
        for job in self.jobs:
            if job.code.strip().lower() == v or job.name.strip().lower() == v:
                return job
        return None

    def holiday_calendar(self) -> HolidayCalendar:
        return HolidayCalendar(self.holiday_rules)

    # --- Roster and job administration ---

    def add_employee(self, name: str, email: str, role: str = EMPLOYEE_ROLE) -> Employee:
        name, email = (name or "").strip(), (email or "").strip()
        if not name or not email:
            raise ConfigError("Employee name and e-mail are required.")
        if role not in (EMPLOYEE_ROLE, MANAGER_ROLE):
            raise ConfigError(f"Unknown role: {role!r}")
        if self.find_employee(name):
            raise ConfigError(f"Employee {name} already exists.")
        employee = Employee(id=str(uuid.uuid4()), name=name, role=role, email=email)
        self.employees.append(employee)
        logger.info("Added employee %s (%s)", name, role)
        return employee

    def remove_employee(self, value: str) -> Employee:
        employee = self.find_employee(value)
        if employee is None:
            raise ConfigError(f"No employee {value!r}.")
        self.employees.remove(employee)
        logger.info("Removed employee %s", employee.name)
        return employee

    def add_job(self, code: str, name: str) -> Job:
        code, name = (code or "").strip(), (name or "").strip()
        if not code or not name:
            raise ConfigError("Job code and name are required.")
        if self.find_job(code) or self.find_job(name):
            raise ConfigError(f"Job {code} already exists.")
        job = Job(code=code, name=name, id=str(uuid.uuid4()))
        self.jobs.append(job)
        logger.info("Added job %s %s", code, name)
        return job

    def deactivate_job(self, value: str) -> Job:
        """Hide a job from new entries; past entries keep their project name."""
        job = self.find_job(value)
        if job is None:
            raise ConfigError(f"No job {value!r}.")
        job.is_active = False
        logger.info("Deactivated job %s", job.code)
        return job


def _as_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def load_company_config(path: str) -> CompanyConfig:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read company config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Company config {path} must be a JSON object.")

    name = str((data.get("company") or {}).get("name") or "")
    employees: list[Employee] = []
    for i, x in enumerate(data.get("employees") or [], start=1):
        if isinstance(x, str):
            employees.append(Employee(id=str(i), name=x))
        elif isinstance(x, dict):
            employees.append(
                Employee(
                    id=str(x.get("id") or i),
                    name=str(x.get("name", "")),
                    role=str(x.get("role") or "Employee"),
                    email=(str(x.get("email")) if x.get("email") is not None else None),
                )
            )
    jobs = [
        Job(
            code=str(x.get("code", "")),
            name=str(x.get("name", "")),
            id=str(x.get("id", "")),
            is_active=_as_bool(x.get("is_active"), True),
        )
        for x in (data.get("jobs") or [])
        if isinstance(x, dict)
    ]
    raw_policy = data.get("policy") or {}
    full_day = raw_policy.get("full_day_hours")
    try:
        full_day_hours = float(full_day) if full_day is not None else get_full_day_hours()
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid full_day_hours: {full_day!r}") from exc
    policy = Policy(
        full_day_hours=full_day_hours,
        block_submission_on_errors=_as_bool(raw_policy.get("block_submission_on_errors"), True),
        reset_status_on_unseen_month=_as_bool(raw_policy.get("reset_status_on_unseen_month"), False),
        exempt_absences_on_non_workdays=_as_bool(
            raw_policy.get("exempt_absences_on_non_workdays"), False
        ),
    )
    holidays = data.get("holidays")
    holiday_rules = [str(line) for line in holidays] if isinstance(holidays, list) else None
    return CompanyConfig(
        name=name,
        employees=employees,
        jobs=jobs,
        policy=policy,
        holiday_rules=holiday_rules,
    )


def load_from_env(default_path: str | None = None) -> CompanyConfig | None:
    """Load a company config from TIMESHEET_CONFIG_PATH or a default path."""
    path = os.environ.get("TIMESHEET_CONFIG_PATH") or default_path
    if not path:
        return None
    if not os.path.isfile(path):
        logger.warning("Company config not found at %s", path)
        return None
    return load_company_config(path)
