"""Project service - projects, milestones, tasks and task list import"""

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import Organization, User
from ...models_project import Project, ProjectMilestone, ProjectTask
from ...permissions import is_privileged
from ...scoping import accessible_organization_ids, can_access_org, ensure_org_access
from ..ai import client as ai_client
from .repository import ProjectRepository
from .schemas import (
    BulkTaskCreate,
    MilestoneCreate,
    MilestoneUpdate,
    ParsedTask,
    ProjectCreate,
    ProjectUpdate,
    TaskCreate,
    TaskUpdate,
)
from .task_parser import parse_task_list

logger = logging.getLogger(__name__)

TASK_PARSE_SYSTEM_PROMPT = "\n".join(
    [
        "You convert pasted client feedback into project task items.",
        "Return strict JSON only. No markdown, no prose.",
        'JSON shape: {"tasks":[{"title":"string","description":"string|null","priority":"low|medium|high|critical"}]}',
        "Rules:",
        "- Preserve each distinct requested action as its own task.",
        "- Keep title concise and action-oriented (max 120 chars).",
        "- Keep description clear and concise, preserving important context.",
        "- Priority should reflect urgency and impact.",
        "- Do not invent requirements that are not in the source text.",
    ]
)


async def refine_with_ai(text: str, baseline: list[dict], max_items: int) -> Optional[list[dict]]:
    """Ask the model to improve the heuristic split; None when it is unavailable or returns junk"""
    prompt = "\n".join(
        [
            f"Maximum tasks to return: {max_items}",
            "",
            "Raw pasted list:",
            text,
            "",
            "Heuristic baseline tasks (use as segmentation hint, improve wording/priority):",
            json.dumps(baseline, indent=2),
            "",
            "Return JSON only.",
        ]
    )
    try:
        result = await ai_client.complete_json(TASK_PARSE_SYSTEM_PROMPT, prompt, max_tokens=4096)
        tasks = [ParsedTask(**item).model_dump() for item in result.get("tasks") or []]
    except (ai_client.AIUnavailableError, ValidationError, TypeError) as e:
        logger.warning(f"⚠️ AI task parsing unavailable, using heuristics: {e}")
        return None
    return tasks[:max_items] or None


class ProjectService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ProjectRepository()

    def _ensure_can_manage(self, user: User) -> None:
        if not is_privileged(user):
            raise HTTPException(status_code=403, detail="Only agency and partner staff can manage projects")

    def _validate_assignee(self, assignee_id: Optional[int], organization_id: int) -> None:
        if assignee_id is None:
            return
        assignee = self.db.query(User).filter(User.id == assignee_id, User.is_active.is_(True)).first()
        if not assignee or not is_privileged(assignee) or not can_access_org(self.db, assignee, organization_id):
            raise HTTPException(status_code=400, detail="Assignee cannot work on this organization's projects")

    # ========================================================================
    # PROJECTS
    # ========================================================================

    def list_projects(
        self, user: User, organization_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Project]:
        org_ids = accessible_organization_ids(self.db, user)
        return self.repo.list_projects(self.db, org_ids, organization_id, status)

    def get_project(self, project_id: int, user: User) -> Project:
        project = self.repo.get_by_id(self.db, project_id)
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        ensure_org_access(self.db, user, project.organization_id)
        return project

    def create_project(self, user: User, data: ProjectCreate) -> Project:
        self._ensure_can_manage(user)
        ensure_org_access(self.db, user, data.organization_id)
        if not self.db.query(Organization.id).filter(Organization.id == data.organization_id).first():
            raise HTTPException(status_code=404, detail="Organization not found")

        project = Project(**data.model_dump(), created_by=user.id)
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        log_action(
            self.db, user, "project.create", "project", project.id, organization_id=project.organization_id
        )
        return project

    def update_project(self, project_id: int, user: User, data: ProjectUpdate) -> Project:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(project, field, value)
        self.db.commit()
        self.db.refresh(project)
        return project

    def delete_project(self, project_id: int, user: User) -> dict:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)
        organization_id = project.organization_id
        self.db.delete(project)
        self.db.commit()
        log_action(self.db, user, "project.delete", "project", project_id, organization_id=organization_id)
        return {"message": "Project deleted"}

    # ========================================================================
    # TASKS
    # ========================================================================

    def list_tasks(self, project_id: int, user: User, status: Optional[str] = None) -> list[ProjectTask]:
        project = self.get_project(project_id, user)
        return self.repo.list_tasks(self.db, project.id, status)

    def _validate_milestone(self, milestone_id: Optional[int], project_id: int) -> None:
        if milestone_id is not None and not self.repo.get_milestone(self.db, project_id, milestone_id):
            raise HTTPException(status_code=400, detail="Milestone does not belong to this project")

    def _new_task(self, project: Project, user: User, data: TaskCreate) -> ProjectTask:
        self._validate_assignee(data.assigned_to, project.organization_id)
        self._validate_milestone(data.milestone_id, project.id)
        return ProjectTask(project_id=project.id, created_by=user.id, **data.model_dump())

    def create_task(self, project_id: int, user: User, data: TaskCreate) -> ProjectTask:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)
        task = self._new_task(project, user, data)
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def bulk_create_tasks(self, project_id: int, user: User, data: BulkTaskCreate) -> list[ProjectTask]:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)
        tasks = [self._new_task(project, user, item) for item in data.tasks]
        self.db.add_all(tasks)
        self.db.commit()
        for task in tasks:
            self.db.refresh(task)
        log_action(
            self.db,
            user,
            "project.tasks_import",
            "project",
            project.id,
            details={"count": len(tasks)},
            organization_id=project.organization_id,
        )
        logger.info(f"✅ Imported {len(tasks)} tasks into project {project.id}")
        return tasks

    def update_task(self, project_id: int, task_id: int, user: User, data: TaskUpdate) -> ProjectTask:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)
        task = self.repo.get_task(self.db, project.id, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")

        updates = data.model_dump(exclude_unset=True)
        if "assigned_to" in updates:
            self._validate_assignee(updates["assigned_to"], project.organization_id)
        if "milestone_id" in updates:
            self._validate_milestone(updates["milestone_id"], project.id)
        for field, value in updates.items():
            setattr(task, field, value)
        self.db.commit()
        self.db.refresh(task)
        return task

    def delete_task(self, project_id: int, task_id: int, user: User) -> dict:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)
        task = self.repo.get_task(self.db, project.id, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        self.db.delete(task)
        self.db.commit()
        return {"message": "Task deleted"}

    async def parse_tasks(self, project_id: int, user: User, text: str, max_items: int, use_ai: bool) -> dict:
        self._ensure_can_manage(user)
        self.get_project(project_id, user)

        tasks = parse_task_list(text, max_items)
        source = "heuristic"
        if use_ai and ai_client.is_available():
            refined = await refine_with_ai(text, tasks, max_items)
            if refined:
                tasks, source = refined, "ai"

        if not tasks:
            raise HTTPException(status_code=400, detail="No tasks found in the pasted text")
        return {"tasks": tasks, "source": source}

    # ========================================================================
    # MILESTONES
    # ========================================================================

    def list_milestones(self, project_id: int, user: User, status: Optional[str] = None) -> list[ProjectMilestone]:
        project = self.get_project(project_id, user)
        return self.repo.list_milestones(self.db, project.id, status)

    def get_milestone(self, project_id: int, milestone_id: int, user: User) -> ProjectMilestone:
        project = self.get_project(project_id, user)
        milestone = self.repo.get_milestone(self.db, project.id, milestone_id)
        if not milestone:
            raise HTTPException(status_code=404, detail="Milestone not found")
        return milestone

    def create_milestone(self, project_id: int, user: User, data: MilestoneCreate) -> ProjectMilestone:
        self._ensure_can_manage(user)
        project = self.get_project(project_id, user)

        values = data.model_dump()
        if values["sort_order"] is None:
            values["sort_order"] = self.repo.next_milestone_order(self.db, project.id)
        milestone = ProjectMilestone(project_id=project.id, created_by=user.id, **values)
        if milestone.status == "completed":
            milestone.completed_date = datetime.utcnow()
        self.db.add(milestone)
        self.db.commit()
        self.db.refresh(milestone)
        logger.info(f"✅ Milestone '{milestone.name}' added to project {project.id}")
        return milestone

    def update_milestone(
        self, project_id: int, milestone_id: int, user: User, data: MilestoneUpdate
    ) -> ProjectMilestone:
        self._ensure_can_manage(user)
        milestone = self.get_milestone(project_id, milestone_id, user)
        updates = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in ("description", "due_date")
        }

        new_status = updates.get("status")
        if new_status == "completed" and milestone.status != "completed":
            milestone.completed_date = datetime.utcnow()
        elif new_status and new_status != "completed":
            milestone.completed_date = None

        for field, value in updates.items():
            setattr(milestone, field, value)
        self.db.commit()
        self.db.refresh(milestone)
        return milestone

    def delete_milestone(self, project_id: int, milestone_id: int, user: User) -> dict:
        """Tasks under the milestone stay on the project, unlinked"""
        self._ensure_can_manage(user)
        milestone = self.get_milestone(project_id, milestone_id, user)
        for task in milestone.tasks:
            task.milestone_id = None
        self.db.delete(milestone)
        self.db.commit()
        return {"message": "Milestone deleted"}
