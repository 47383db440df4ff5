from pydantic import BaseModel
from typing import List, Optional

class ReviewCaseOut(BaseModel):
    id: str
    ticketId: Optional[str] = None
    attemptId: Optional[str] = None
    gatewayRef: str
    outcome: str
    ticketStatus: str = ""
    reason: str
    status: str
    resolution: str = ""
    resolutionNote: str = ""
    resolvedBy: str = ""
    createdAt: str
    resolvedAt: Optional[str] = None

class ReviewCaseList(BaseModel):
    total: int
    items: List[ReviewCaseOut]

class ReviewCaseResolve(BaseModel):
    resolution: str  # REFUNDED | HONORED_OFFLINE
    note: str = ""
