"""AWS EC2 compute provider.

Launches the worker instance with the runner bootstrap as user data,
reports its state as a ReadinessState, and terminates it.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError
from loguru import logger

from skyrunner.constants import DEAD_STATES, InstanceState, RunnerTag
from skyrunner.types import PENDING, READY, Failed, InstanceHandle, ReadinessState

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

    from skyrunner.config import EC2Config

log = logger.bind(component="aws")

# Right after RunInstances the id may not be visible to Describe* calls yet.
_NOT_FOUND_CODES = ("InvalidInstanceID.NotFound", "InvalidInstanceId")

# Throttling that outlasted botocore's own retries; the next poll tries again.
_THROTTLE_CODES = ("RequestLimitExceeded", "Throttling", "ThrottlingException")


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class EC2ComputeProvider:
    """Single-instance EC2 lifecycle.

    Args:
        config: EC2 launch settings.
        client: Pre-built EC2 client. Created lazily from ``config.region``
            when omitted.
    """

    def __init__(self, config: EC2Config, client: EC2Client | None = None) -> None:
        self.config = config
        self._client = client

    @cached_property
    def _ec2(self) -> EC2Client:
        if self._client is not None:
            return self._client
        import boto3

        return boto3.client("ec2", region_name=self.config.region)

    @property
    def region(self) -> str:
        return self.config.region or self._ec2.meta.region_name

    # -------------------------------------------------------------------------
    # Launch parameters
    # -------------------------------------------------------------------------

    def _tag_specifications(self, label: str) -> list[dict[str, Any]]:
        tags = {
            RunnerTag.NAME.value: f"skyrunner-{label}",
            **self.config.tags,
            RunnerTag.MANAGED.value: "true",
            RunnerTag.LABEL.value: label,
        }
        tag_list = [{"Key": str(k), "Value": str(v)} for k, v in tags.items()]
        return [
            {"ResourceType": "instance", "Tags": tag_list},
            {"ResourceType": "volume", "Tags": tag_list},
        ]

    def _market_options(self) -> dict[str, Any] | None:
        if self.config.market_type != "spot":
            return None
        return {
            "MarketType": "spot",
            "SpotOptions": {"SpotInstanceType": "one-time"},
        }

    def run_instances_params(self, user_data: str, label: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "ImageId": self.config.image_id,
            "InstanceType": self.config.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "SubnetId": self.config.subnet_id,
            "SecurityGroupIds": [self.config.security_group_id],
            # boto3 base64-encodes UserData for RunInstances
            "UserData": user_data,
            "TagSpecifications": self._tag_specifications(label),
        }
        if self.config.iam_role_name:
            params["IamInstanceProfile"] = {"Name": self.config.iam_role_name}
        if market := self._market_options():
            params["InstanceMarketOptions"] = market
        return params

    # -------------------------------------------------------------------------
    # ComputeProvider
    # -------------------------------------------------------------------------

    def create(self, user_data: str, label: str) -> InstanceHandle:
        try:
            response = self._ec2.run_instances(**self.run_instances_params(user_data, label))
        except ClientError:
            log.error("EC2 instance launch failed for label {label}", label=label)
            raise

        instance_id = response["Instances"][0]["InstanceId"]
        handle = InstanceHandle(instance_id=instance_id, region=self.region)
        log.info(
            "EC2 instance {id} launched in {region}",
            id=instance_id, region=handle.region,
        )
        return handle

    def is_running(self, handle: InstanceHandle) -> ReadinessState:
        try:
            response = self._ec2.describe_instances(InstanceIds=[handle.instance_id])
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return PENDING
            if _error_code(e) in _THROTTLE_CODES:
                log.warning("EC2 describe for {id} throttled, retrying", id=handle.instance_id)
                return PENDING
            return Failed(f"describe_instances failed: {e}")

        instances = [
            inst
            for reservation in response.get("Reservations", [])
            for inst in reservation.get("Instances", [])
        ]
        if not instances:
            return PENDING

        state = instances[0].get("State", {}).get("Name", "")
        log.debug("EC2 instance {id} is {state}", id=handle.instance_id, state=state)

        if state == InstanceState.RUNNING:
            return READY
        if state in DEAD_STATES:
            reason = instances[0].get("StateReason", {}).get("Message", "")
            suffix = f" ({reason})" if reason else ""
            return Failed(f"instance {handle.instance_id} entered state {state}{suffix}")
        return PENDING

    def terminate(self, handle: InstanceHandle) -> None:
        try:
            self._ec2.terminate_instances(InstanceIds=[handle.instance_id])
        except ClientError:
            log.error("EC2 instance {id} termination failed", id=handle.instance_id)
            raise
        log.info("EC2 instance {id} is terminating", id=handle.instance_id)
