"""Import every ORM model so mappers and metadata are complete."""

from docuflow.v1.documents.models import (  # noqa: F401
    BankTransfer,
    ContributionBatch,
    ContributionItem,
    Document,
    Extraction,
)
from docuflow.v1.infra.jobs.models import Job  # noqa: F401
from docuflow.v1.institutions.models import Institution  # noqa: F401
from docuflow.v1.members.models import Member  # noqa: F401
from docuflow.v1.system_config.models import SystemConfig  # noqa: F401
