"""
Accessors for the service handles built by the application lifespan.

Handles live on ``app.state``; tests swap them by assigning new instances.
"""

from typing import Annotated

from fastapi import Depends, Request

from taskgate.apps.jobs.services import JobSubmissionService
from taskgate.apps.projects.services import ProjectService
from taskgate.core.services import AccountOnboardingService, SessionTokenService


def get_onboarding_service(request: Request) -> AccountOnboardingService:
    return request.app.state.onboarding_service


def get_token_service(request: Request) -> SessionTokenService:
    return request.app.state.token_service


def get_job_service(request: Request) -> JobSubmissionService:
    return request.app.state.job_service


def get_project_service(request: Request) -> ProjectService:
    return request.app.state.project_service


OnboardingServiceDep = Annotated[
    AccountOnboardingService, Depends(get_onboarding_service)
]
TokenServiceDep = Annotated[SessionTokenService, Depends(get_token_service)]
JobServiceDep = Annotated[JobSubmissionService, Depends(get_job_service)]
ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]
