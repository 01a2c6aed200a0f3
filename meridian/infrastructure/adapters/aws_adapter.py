"""
AWS Cloud Provider Adapter

Architectural Intent:
- Implements CloudProviderPort for AWS EC2 security groups and instances
- Simulates boto3 SDK call patterns without importing the real SDK, enabling
  integration testing and local development with zero cloud credentials
- When the real boto3 library is available, replace the _stub_* helpers with
  actual boto3.client("ec2") calls; the public method signatures remain stable

Design Decisions:
- __init__ accepts all provider configuration (region, AMI, VPC range, default
  ingress exposure) so the adapter is fully self-contained and testable
- Private addresses are allocated in order from the VPC range, skipping the
  addresses AWS reserves at the start of a subnet
- Public addresses come from the documentation range 203.0.113.0/24
- Instance ids and InstanceSet members are both created through run_instances;
  the scheduler already expanded sets into individual instances

Attribute convention:
    SecurityGroup: id, name, vpc_id, ingress
    Instance:      id, private_ip, public_ip, instance_type, ami,
                   security_groups, availability_zone, (port when declared)
"""

import datetime
import ipaddress
import logging
import uuid
from typing import Any, Iterable, Optional

from meridian.domain.entities.resource_instance import InstanceStatus, ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind
from meridian.domain.errors import ProviderError

logger = logging.getLogger(__name__)

_PUBLIC_RANGE = ipaddress.ip_network("203.0.113.0/24")
_RESERVED_HOSTS = 4


# ---------------------------------------------------------------------------
# Internal helpers that mimic the shape of real boto3 response payloads.
# ---------------------------------------------------------------------------

def _response_metadata() -> dict:
    return {
        "RequestId": str(uuid.uuid4()),
        "HTTPStatusCode": 200,
        "HTTPHeaders": {},
    }


def _stub_create_security_group(group_name: str, description: str, vpc_id: str) -> dict:
    """
    Simulate a boto3 EC2.create_security_group() response.

    The real call looks like:
        ec2.create_security_group(GroupName=group_name,
                                  Description=description, VpcId=vpc_id)
    """
    return {
        "GroupId": "sg-" + uuid.uuid4().hex[:17],
        "ResponseMetadata": _response_metadata(),
    }


def _stub_authorize_ingress(group_id: str, permissions: list[dict]) -> dict:
    """
    Simulate a boto3 EC2.authorize_security_group_ingress() response.

    The real call looks like:
        ec2.authorize_security_group_ingress(GroupId=group_id,
                                             IpPermissions=permissions)
    """
    return {
        "Return": True,
        "SecurityGroupRules": [
            {
                "SecurityGroupRuleId": "sgr-" + uuid.uuid4().hex[:17],
                "GroupId": group_id,
                "IpProtocol": perm["IpProtocol"],
                "FromPort": perm["FromPort"],
                "ToPort": perm["ToPort"],
                "CidrIpv4": ip_range["CidrIp"],
            }
            for perm in permissions
            for ip_range in perm["IpRanges"]
        ],
        "ResponseMetadata": _response_metadata(),
    }


def _stub_run_instances(
    region: str,
    image_id: str,
    instance_type: str,
    name: str,
    security_group_ids: list[str],
    user_data: Optional[str],
    private_ip: str,
    public_ip: Optional[str],
) -> dict:
    """
    Simulate a boto3 EC2.run_instances() response.

    The real call looks like:
        ec2.run_instances(ImageId=image_id, InstanceType=instance_type,
                          MinCount=1, MaxCount=1,
                          SecurityGroupIds=security_group_ids,
                          UserData=user_data or "",
                          TagSpecifications=[{"ResourceType": "instance",
                              "Tags": [{"Key": "Name", "Value": name}]}])
    """
    now = datetime.datetime.now(datetime.UTC).isoformat()
    return {
        "Instances": [
            {
                "InstanceId": "i-" + uuid.uuid4().hex[:17],
                "InstanceType": instance_type,
                "ImageId": image_id,
                "State": {"Code": 0, "Name": "pending"},
                "PrivateIpAddress": private_ip,
                "PublicIpAddress": public_ip,
                "SecurityGroups": [
                    {"GroupId": sg, "GroupName": sg} for sg in security_group_ids
                ],
                "UserData": user_data or "",
                "LaunchTime": now,
                "Placement": {"AvailabilityZone": f"{region}a"},
                "Tags": [{"Key": "Name", "Value": name}, {"Key": "ManagedBy", "Value": "meridian"}],
            }
        ],
        "ResponseMetadata": _response_metadata(),
    }


def _stub_terminate_instances(instance_ids: list[str]) -> dict:
    """
    Simulate a boto3 EC2.terminate_instances() response.
    """
    return {
        "TerminatingInstances": [
            {
                "InstanceId": iid,
                "CurrentState": {"Code": 32, "Name": "shutting-down"},
                "PreviousState": {"Code": 16, "Name": "running"},
            }
            for iid in instance_ids
        ],
        "ResponseMetadata": _response_metadata(),
    }


def _ingress_permissions(rules: Iterable[Any], default_cidrs: tuple[str, ...]) -> list[dict]:
    """Translate declared ingress rules into EC2 IpPermissions."""
    permissions = []
    for rule in rules:
        if isinstance(rule, int):
            rule = {"port": rule}
        if not isinstance(rule, dict) or "port" not in rule:
            raise ProviderError(f"Invalid ingress rule: {rule!r}")
        port = int(rule["port"])
        cidrs = rule.get("cidrs") or list(default_cidrs)
        permissions.append(
            {
                "IpProtocol": rule.get("protocol", "tcp"),
                "FromPort": port,
                "ToPort": int(rule.get("to_port", port)),
                "IpRanges": [{"CidrIp": c} for c in cidrs],
            }
        )
    return permissions


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        out: list[str] = []
        for item in value:
            out.extend(_as_list(item))
        return out
    return [str(value)]


# ---------------------------------------------------------------------------
# Public adapter
# ---------------------------------------------------------------------------

class AWSAdapter:
    """
    Simulated AWS EC2 provider.

    The in-memory registry (_resources) plays the role of the EC2 backend:
    create adds entries and destroy removes them.

    Configuration parameters
    ------------------------
    region : str
        AWS region name (e.g. "us-east-1").
    default_ami : str
        AMI ID used when the declaration does not supply one.
    default_instance_type : str
        Instance type used when the declaration does not supply one.
    vpc_cidr : str
        Range private addresses are allocated from.
    default_ingress_cidrs : tuple[str, ...]
        Source ranges for ingress rules that do not list their own.
    fail_names : set[str] | None
        Resource names whose creation is rejected with a capacity error.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        default_ami: str = "ami-0abcdef1234567890",
        default_instance_type: str = "t3.micro",
        vpc_cidr: str = "10.0.0.0/16",
        default_ingress_cidrs: tuple[str, ...] = ("0.0.0.0/0",),
        fail_names: Optional[set[str]] = None,
    ) -> None:
        self.region = region
        self.default_ami = default_ami
        self.default_instance_type = default_instance_type
        self.vpc_id = "vpc-" + uuid.uuid4().hex[:17]
        self.default_ingress_cidrs = tuple(default_ingress_cidrs)
        self.fail_names = set(fail_names or ())

        self._vpc = ipaddress.ip_network(vpc_cidr)
        self._allocated = 0
        self._resources: dict[str, ResourceInstance] = {}
        self.create_calls: list[str] = []

        logger.debug(
            "AWSAdapter initialised (region=%s, ami=%s, vpc=%s)",
            region,
            default_ami,
            vpc_cidr,
        )

    def _next_addresses(self) -> tuple[str, str]:
        index = self._allocated
        self._allocated += 1
        private = self._vpc.network_address + _RESERVED_HOSTS + index
        if private not in self._vpc or private == self._vpc.broadcast_address:
            raise ProviderError(f"VPC range {self._vpc} exhausted")
        public = _PUBLIC_RANGE.network_address + 10 + (index % 240)
        return str(private), str(public)

    # ------------------------------------------------------------------
    # CloudProviderPort implementation
    # ------------------------------------------------------------------

    async def create(
        self, name: str, kind: ResourceKind, inputs: dict[str, Any]
    ) -> ResourceInstance:
        self.create_calls.append(name)
        if name in self.fail_names:
            logger.error("Simulated capacity error for %s", name)
            raise ProviderError(f"InsufficientInstanceCapacity: cannot create {name}")

        if kind is ResourceKind.SECURITY_GROUP:
            attributes = self._create_security_group(name, inputs)
        elif kind in (ResourceKind.INSTANCE, ResourceKind.INSTANCE_SET):
            attributes = self._run_instance(name, inputs)
        else:
            raise ProviderError(f"Unsupported resource kind: {kind!r}")

        instance = ResourceInstance(
            id=name,
            kind=kind,
            status=InstanceStatus.READY,
            attributes=attributes,
            inputs=inputs,
        )
        self._resources[attributes["id"]] = instance
        return instance

    def _create_security_group(self, name: str, inputs: dict[str, Any]) -> dict[str, Any]:
        group_name = str(inputs.get("name", name))
        permissions = _ingress_permissions(
            inputs.get("ingress", ()), self.default_ingress_cidrs
        )
        logger.info("AWS EC2 create_security_group: name=%s vpc=%s", group_name, self.vpc_id)
        response = _stub_create_security_group(
            group_name, str(inputs.get("description", "")), self.vpc_id
        )
        group_id = response["GroupId"]
        ingress = []
        if permissions:
            granted = _stub_authorize_ingress(group_id, permissions)
            ingress = [
                {
                    "protocol": rule["IpProtocol"],
                    "from_port": rule["FromPort"],
                    "to_port": rule["ToPort"],
                    "cidr": rule["CidrIpv4"],
                }
                for rule in granted["SecurityGroupRules"]
            ]
        return {"id": group_id, "name": group_name, "vpc_id": self.vpc_id, "ingress": ingress}

    def _run_instance(self, name: str, inputs: dict[str, Any]) -> dict[str, Any]:
        private_ip, public_ip = self._next_addresses()
        if not inputs.get("associate_public_ip", True):
            public_ip = None
        image_id = str(inputs.get("ami", self.default_ami))
        instance_type = str(inputs.get("instance_type", self.default_instance_type))
        security_groups = _as_list(inputs.get("security_groups"))

        logger.info(
            "AWS EC2 run_instances: name=%s type=%s region=%s ami=%s ip=%s",
            name,
            instance_type,
            self.region,
            image_id,
            private_ip,
        )
        response = _stub_run_instances(
            region=self.region,
            image_id=image_id,
            instance_type=instance_type,
            name=name,
            security_group_ids=security_groups,
            user_data=inputs.get("user_data"),
            private_ip=private_ip,
            public_ip=public_ip,
        )
        raw = response["Instances"][0]
        attributes: dict[str, Any] = {
            "id": raw["InstanceId"],
            "private_ip": raw["PrivateIpAddress"],
            "public_ip": raw["PublicIpAddress"],
            "instance_type": raw["InstanceType"],
            "ami": raw["ImageId"],
            "security_groups": [sg["GroupId"] for sg in raw["SecurityGroups"]],
            "availability_zone": raw["Placement"]["AvailabilityZone"],
        }
        if "port" in inputs:
            attributes["port"] = int(inputs["port"])
        return attributes

    async def describe(self, provider_id: str) -> ResourceInstance:
        instance = self._resources.get(provider_id)
        if instance is None:
            raise ProviderError(f"InvalidID.NotFound: {provider_id}")
        return instance

    async def destroy(self, provider_id: str) -> None:
        instance = self._resources.get(provider_id)
        if instance is None:
            raise ProviderError(f"InvalidID.NotFound: {provider_id}")
        if instance.kind is ResourceKind.SECURITY_GROUP:
            logger.info("AWS EC2 delete_security_group: %s", provider_id)
        else:
            response = _stub_terminate_instances([provider_id])
            state = response["TerminatingInstances"][0]["CurrentState"]["Name"]
            logger.info("AWS EC2 terminate_instances: %s -> %s", provider_id, state)
        del self._resources[provider_id]

    @property
    def resource_count(self) -> int:
        return len(self._resources)
