"""Concrete collaborators: EC2 for compute, GitHub for runner registration.

Example:
    from skyrunner.providers import EC2ComputeProvider, GitHubRegistrationService

    compute = EC2ComputeProvider(config.ec2)
    registry = GitHubRegistrationService(config.github)
"""

from skyrunner.providers.aws import EC2ComputeProvider
from skyrunner.providers.github import GitHubRegistrationService

__all__ = ["EC2ComputeProvider", "GitHubRegistrationService"]
