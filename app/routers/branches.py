from fastapi import APIRouter, Request, Depends
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models.branch import Branch
from app.schemas.branch import BranchCreate, BranchOut
from app.services.auth import get_admin_user

router = APIRouter()
logger = logging.getLogger("branches")


def branch_to_out(branch: Branch) -> dict:
    return BranchOut.model_validate(branch).model_dump(by_alias=True, mode="json")


@router.get("")
async def list_branches(db: Session = Depends(get_db)):
    """營業中的分店"""
    branches = db.query(Branch).filter(Branch.is_active == True).order_by(Branch.name).all()
    return {"success": True, "count": len(branches), "branches": [branch_to_out(b) for b in branches]}


@router.post("", status_code=201)
async def create_branch(payload: BranchCreate, request: Request, db: Session = Depends(get_db)):
    await get_admin_user(request, db)

    branch = Branch(**payload.model_dump())
    db.add(branch)
    db.commit()
    db.refresh(branch)
    logger.info(f"新增分店：{branch.name} (id={branch.id})")

    return {"success": True, "message": "Branch created successfully", "branch": branch_to_out(branch)}
