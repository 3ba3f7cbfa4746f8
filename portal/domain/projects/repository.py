"""Project repository"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models_project import Project, ProjectMilestone, ProjectTask


class ProjectRepository:
    @staticmethod
    def get_by_id(db: Session, project_id: int) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def list_projects(
        db: Session, org_ids: Optional[set[int]], organization_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Project]:
        query = db.query(Project)
        if org_ids is not None:
            query = query.filter(Project.organization_id.in_(org_ids))
        if organization_id:
            query = query.filter(Project.organization_id == organization_id)
        if status:
            query = query.filter(Project.status == status)
        return query.order_by(Project.created_at.desc(), Project.id.desc()).all()

    @staticmethod
    def get_task(db: Session, project_id: int, task_id: int) -> Optional[ProjectTask]:
        return (
            db.query(ProjectTask)
            .filter(ProjectTask.id == task_id, ProjectTask.project_id == project_id)
            .first()
        )

    @staticmethod
    def list_tasks(db: Session, project_id: int, status: Optional[str] = None) -> list[ProjectTask]:
        query = db.query(ProjectTask).filter(ProjectTask.project_id == project_id)
        if status:
            query = query.filter(ProjectTask.status == status)
        return query.order_by(ProjectTask.id).all()

    @staticmethod
    def get_milestone(db: Session, project_id: int, milestone_id: int) -> Optional[ProjectMilestone]:
        return (
            db.query(ProjectMilestone)
            .filter(ProjectMilestone.id == milestone_id, ProjectMilestone.project_id == project_id)
            .first()
        )

    @staticmethod
    def list_milestones(db: Session, project_id: int, status: Optional[str] = None) -> list[ProjectMilestone]:
        query = db.query(ProjectMilestone).filter(ProjectMilestone.project_id == project_id)
        if status:
            query = query.filter(ProjectMilestone.status == status)
        # Undated milestones sort after dated ones
        return query.order_by(
            ProjectMilestone.due_date.is_(None),
            ProjectMilestone.due_date,
            ProjectMilestone.sort_order,
            ProjectMilestone.id,
        ).all()

    @staticmethod
    def next_milestone_order(db: Session, project_id: int) -> int:
        current = (
            db.query(func.max(ProjectMilestone.sort_order)).filter(ProjectMilestone.project_id == project_id).scalar()
        )
        return 0 if current is None else current + 1
