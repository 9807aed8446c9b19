"""AWS Lambda handlers.

`handler` serves the FastAPI app behind API Gateway through Mangum.
`job_handler` is invoked on a schedule (EventBridge) and runs due jobs.
"""

import asyncio

from mangum import Mangum

from mailgun_sync.jobs.runner import JobRunner
from mailgun_sync.main import app

handler = Mangum(app, lifespan="off")


def job_handler(event: dict, context: object) -> dict:
    """
    Scheduled Lambda entry point.

    Args:
        event: EventBridge event (unused)
        context: Lambda context object

    Returns:
        Counts of completed, broken and skipped jobs
    """
    return asyncio.run(JobRunner().run_due_jobs())
