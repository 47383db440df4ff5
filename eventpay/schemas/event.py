from pydantic import BaseModel
from typing import List, Optional

class TicketClassOut(BaseModel):
    name: str
    price: int

class EventOut(BaseModel):
    id: str
    title: str
    date: Optional[str] = None
    location: str = ""
    description: str = ""
    maxRegistrations: int = 0
    currentRegistrations: int = 0
    availableTickets: int = 0
    ticketTypes: List[TicketClassOut] = []

class PaginationOut(BaseModel):
    total: int
    pages: int
    current: int
    limit: int

class EventListOut(BaseModel):
    events: List[EventOut]
    pagination: PaginationOut
