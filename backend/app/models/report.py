"""
Pydantic models for scheduled reports.
"""

from pydantic import BaseModel


class ReportDefinition(BaseModel):
    """
    One user_reports row joined with its owner's address.

    created_at is epoch seconds; the first report covers purchases since then.
    """

    id: int
    user_email: str
    report_type: str
    schedule: str
    created_at: int
