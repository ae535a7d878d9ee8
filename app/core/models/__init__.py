from app.core.models.department import Department
from app.core.models.batch import Batch, BatchYear
from app.core.models.student import Student
from app.core.models.wash_policy import WashPolicy
from app.core.models.wash_allowance import WashAllowance
from app.core.models.wash_request import WashRequest

__all__ = [
    "Batch",
    "BatchYear",
    "Department",
    "Student",
    "WashAllowance",
    "WashPolicy",
    "WashRequest",
]
