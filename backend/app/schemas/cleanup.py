from datetime import datetime
from pydantic import BaseModel


class CleanupResponse(BaseModel):
    success: bool = True
    message: str = "Cleanup tasks completed successfully"
    completed: int
    deleted: int
    timestamp: datetime
