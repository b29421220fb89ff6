"""SQLModel table models — import here so metadata is populated."""

from poolfund.models.fund_event import FundEventRecord  # noqa: F401
