"""
Project CRUD — membership of employees (with part-time flag).

Reads are open to any authenticated user, writes to Admins.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.deps import get_current_user, get_db
from app.core.exceptions import BadInputError, ForbiddenError, NotFoundError
from app.core.permissions import can_manage_projects
from app.models.employee import Employee, ProjectEmployee
from app.models.project import Project
from app.models.user import User
from app.schemas.project import ProjectCreate, ProjectMemberIn, ProjectRead, ProjectUpdate

router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)


def _project_query():
    return select(Project).options(
        selectinload(Project.employee_links).selectinload(ProjectEmployee.employee)
    )


async def _get_project_or_404(db: AsyncSession, project_id: int) -> Project:
    result = await db.execute(
        _project_query()
        .where(Project.id == project_id)
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project not found.")
    return project


async def _validate_members(db: AsyncSession, members: list[ProjectMemberIn]) -> None:
    ids = [m.employee_id for m in members]
    if len(ids) != len(set(ids)):
        raise BadInputError("An employee can only be added to a project once.")
    if not ids:
        return
    result = await db.execute(select(Employee.id).where(Employee.id.in_(ids)))
    missing = set(ids) - set(result.scalars().all())
    if missing:
        raise NotFoundError(f"Employee not found: {sorted(missing)[0]}.")


def _apply_members(project: Project, members: list[ProjectMemberIn]) -> None:
    """Replace the membership set, reusing rows for employees that stay."""
    existing = {link.employee_id: link for link in project.employee_links}
    links = []
    for member in members:
        link = existing.get(member.employee_id) or ProjectEmployee(employee_id=member.employee_id)
        link.part_time = member.part_time
        links.append(link)
    project.employee_links = links


def _require_admin(user: User, action: str) -> None:
    decision = can_manage_projects(user, action)
    if not decision:
        raise ForbiddenError(decision.reason)


@router.get("", response_model=list[ProjectRead])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> list[Project]:
    result = await db.execute(_project_query().order_by(Project.name, Project.id))
    return list(result.scalars().all())


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> Project:
    return await _get_project_or_404(db, project_id)


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Project:
    _require_admin(current_user, "create")
    await _validate_members(db, body.employees)

    project = Project(name=body.name, description=body.description)
    project.employee_links = [
        ProjectEmployee(employee_id=m.employee_id, part_time=m.part_time) for m in body.employees
    ]
    db.add(project)
    await db.commit()
    logger.info("Created project %d (%s) with %d employees", project.id, project.name, len(body.employees))
    return await _get_project_or_404(db, project.id)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Project:
    _require_admin(current_user, "update")
    project = await _get_project_or_404(db, project_id)

    changes = body.provided()
    if "employees" in changes:
        members = body.employees or []
        await _validate_members(db, members)
        _apply_members(project, members)
        changes.pop("employees")

    for field, value in changes.items():
        setattr(project, field, value)

    await db.commit()
    logger.info("Updated project %d (fields: %s)", project_id, sorted(body.model_fields_set))
    return await _get_project_or_404(db, project_id)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    _require_admin(current_user, "delete")
    project = await _get_project_or_404(db, project_id)

    await db.delete(project)
    await db.commit()
    logger.info("Deleted project %d", project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
