from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from travelcrm.db.session import get_db
from travelcrm.models.agency import Agency


def get_current_agency(
    db: Session = Depends(get_db),
    x_agency_id: Optional[str] = Header(default=None, alias="X-Agency-Id"),
    x_agency_code: Optional[str] = Header(default=None, alias="X-Agency-Code"),
) -> Agency:
    if not x_agency_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Agency-Id header is required",
        )

    agency = db.query(Agency).filter(Agency.id == x_agency_id).first()
    if not agency:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Agency not found",
        )

    if x_agency_code and agency.code != x_agency_code.strip().upper():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agency mismatch",
        )

    if not agency.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agency is inactive",
        )

    return agency
