from fastapi import APIRouter

from hireflow.api.routes import applications
from hireflow.api.routes import approvals
from hireflow.api.routes import audit
from hireflow.api.routes import candidate
from hireflow.api.routes import events
from hireflow.api.routes import interviews
from hireflow.api.routes import jobs
from hireflow.api.routes import offers
from hireflow.api.routes import scorecards

api_router = APIRouter()
api_router.include_router(jobs.router)
api_router.include_router(jobs.public_router)
api_router.include_router(approvals.router)
api_router.include_router(applications.router)
api_router.include_router(interviews.router)
api_router.include_router(scorecards.router)
api_router.include_router(offers.router)
api_router.include_router(candidate.router)
api_router.include_router(events.router)
api_router.include_router(audit.router)
