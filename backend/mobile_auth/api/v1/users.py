"""Mobile profile routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mobile_auth.api.deps import get_device_bound_auth, get_employee_device_auth
from mobile_auth.core.database import get_db
from mobile_auth.core.exceptions import ResourceNotFoundError
from mobile_auth.core.guards import DeviceBoundAuth
from mobile_auth.models.user import Employee
from mobile_auth.schemas.response import ErrorResponse
from mobile_auth.services.user_service import user_service

router = APIRouter(responses={
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
})


@router.get("/me")
def get_my_profile(
    auth: DeviceBoundAuth = Depends(get_device_bound_auth),
    db: Session = Depends(get_db),
):
    """
    Get the signed-in user's profile

    Args:
        auth: Device-bound authentication context
        db: Database session

    Returns:
        Profile wrapped in ``data``
    """
    user = user_service.get_user_by_id(db, auth.user_id)
    if not user:
        raise ResourceNotFoundError("User")
    return {"data": user.to_dict()}


@router.get("/me/employee")
def get_my_employee(
    auth: DeviceBoundAuth = Depends(get_employee_device_auth),
    db: Session = Depends(get_db),
):
    """Employee record behind the token's employee id"""
    employee = db.query(Employee).filter(Employee.id == auth.employee_id).first()
    if not employee:
        raise ResourceNotFoundError("Employee")
    return {"data": employee.to_dict()}
