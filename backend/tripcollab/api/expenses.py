from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripcollab.api.deps import CurrentUser, get_current_user
from tripcollab.database import get_db
from tripcollab.schemas.collaboration import ExpenseCreate, ExpenseResponse, ExpenseSummary
from tripcollab.services.expenses import ExpenseService
from tripcollab.services.membership import MembershipService

router = APIRouter()


@router.get("/{plan_id}/expenses", response_model=list[ExpenseResponse])
async def list_expenses(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    return ExpenseService(db).list_expenses(plan_id)


@router.post("/{plan_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def add_expense(
    plan_id: int,
    payload: ExpenseCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    MembershipService(db).require_member(plan_id, user.id)
    return ExpenseService(db).add_expense(plan_id, user.id, user.display_name, payload.description, payload.amount)


@router.get("/{plan_id}/expenses/summary", response_model=ExpenseSummary)
async def expense_summary(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    return ExpenseService(db).summary(plan_id)
