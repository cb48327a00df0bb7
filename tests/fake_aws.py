"""
In-memory stand-ins for the boto3 clients, raising real ClientErrors.
"""

from datetime import datetime, timezone

from botocore.exceptions import ClientError

from ecsdeploy.aws import AwsClients

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"


def client_error(code, message="", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeEcs:
    def __init__(self):
        self.clusters = {}
        self.services = {}
        self.task_definitions = {}
        self.tasks = {}
        self.create_service_calls = []
        self.register_error = None

    def describe_clusters(self, clusters):
        return {"clusters": [self.clusters[c] for c in clusters if c in self.clusters]}

    def create_cluster(self, clusterName):
        existing = self.clusters.get(clusterName)
        if existing and existing["status"] == "ACTIVE":
            return {"cluster": existing}
        cluster = self.clusters[clusterName] = {
            "clusterName": clusterName,
            "clusterArn": f"arn:aws:ecs:{REGION}:{ACCOUNT_ID}:cluster/{clusterName}",
            "status": "ACTIVE",
        }
        return {"cluster": cluster}

    def register_task_definition(self, **request):
        if self.register_error:
            raise self.register_error
        family = request["family"]
        revisions = self.task_definitions.setdefault(family, [])
        revisions.append(request)
        revision = len(revisions)
        return {"taskDefinition": {
            "family": family,
            "revision": revision,
            "taskDefinitionArn": f"arn:aws:ecs:{REGION}:{ACCOUNT_ID}:task-definition/{family}:{revision}",
        }}

    def create_service(self, **request):
        self.create_service_calls.append(request)
        key = (request["cluster"], request["serviceName"])
        if key in self.services:
            raise client_error("InvalidParameterException", "Creation of service was not idempotent.",
                               "CreateService")
        self.services[key] = {
            "serviceName": request["serviceName"],
            "status": "ACTIVE",
            "desiredCount": request["desiredCount"],
            "runningCount": 0,
            "taskDefinition": request["taskDefinition"],
            "loadBalancers": request.get("loadBalancers", []),
            "events": [],
        }
        return {"service": self.services[key]}

    def describe_services(self, cluster, services):
        found = [self.services[(cluster, s)] for s in services if (cluster, s) in self.services]
        return {"services": found, "failures": []}

    def start_task(self, cluster, service, health="UNKNOWN", eni="eni-0abc", image=None):
        """Simulate the scheduler placing one task for a service."""
        arn = f"arn:aws:ecs:{REGION}:{ACCOUNT_ID}:task/{cluster}/{len(self.tasks) + 1:032x}"
        self.tasks[arn] = {
            "cluster": cluster,
            "service": service,
            "taskArn": arn,
            "lastStatus": "RUNNING",
            "healthStatus": health,
            "startedAt": datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc),
            "containers": [{"image": image or f"{ACCOUNT_ID}.dkr.ecr.{REGION}.amazonaws.com/java-api:abc123"}],
            "attachments": [{"type": "ElasticNetworkInterface", "details": [
                {"name": "subnetId", "value": "subnet-1"},
                {"name": "networkInterfaceId", "value": eni},
            ]}],
        }
        self.services[(cluster, service)]["runningCount"] += 1
        return arn

    def list_tasks(self, cluster, serviceName, desiredStatus):
        arns = [arn for arn, t in self.tasks.items()
                if t["cluster"] == cluster and t["service"] == serviceName and t["lastStatus"] == desiredStatus]
        return {"taskArns": arns}

    def describe_tasks(self, cluster, tasks):
        return {"tasks": [self.tasks[arn] for arn in tasks if arn in self.tasks]}


class FakeLogs:
    def __init__(self):
        self.groups = {}
        self.page_size = None
        self.leading_empty_pages = 0

    def create_log_group(self, logGroupName):
        if logGroupName in self.groups:
            raise client_error("ResourceAlreadyExistsException", "The specified log group already exists",
                               "CreateLogGroup")
        self.groups[logGroupName] = []

    def filter_log_events(self, logGroupName, startTime):
        if logGroupName not in self.groups:
            raise client_error("ResourceNotFoundException", "The specified log group does not exist.",
                               "FilterLogEvents")
        return {"events": [{"message": m} for m in self.groups[logGroupName]]}

    def get_paginator(self, operation):
        assert operation == "filter_log_events"
        return _Paginator(self._event_pages)

    def _event_pages(self, logGroupName, startTime):
        events = self.filter_log_events(logGroupName, startTime)["events"]
        for n in range(self.leading_empty_pages):
            yield {"events": [], "nextToken": f"empty{n}"}
        size = self.page_size or max(len(events), 1)
        for start in range(0, max(len(events), 1), size):
            page = {"events": events[start:start + size]}
            if start + size < len(events):
                page["nextToken"] = f"t{start + size}"
            yield page


class _Paginator:
    def __init__(self, pages):
        self._pages = pages

    def paginate(self, **kwargs):
        return self._pages(**kwargs)


class FakeIam:
    def __init__(self):
        self.roles = {}
        self.attach_error = None

    def create_role(self, RoleName, AssumeRolePolicyDocument):
        if RoleName in self.roles:
            raise client_error("EntityAlreadyExists", f"Role with name {RoleName} already exists.", "CreateRole")
        self.roles[RoleName] = {"trust": AssumeRolePolicyDocument, "policies": set()}
        return {"Role": {"RoleName": RoleName, "Arn": f"arn:aws:iam::{ACCOUNT_ID}:role/{RoleName}"}}

    def attach_role_policy(self, RoleName, PolicyArn):
        if self.attach_error:
            raise self.attach_error
        self.roles[RoleName]["policies"].add(PolicyArn)

    def get_paginator(self, name):
        assert name == "list_attached_role_policies"

        def pages(RoleName):
            policies = sorted(self.roles.get(RoleName, {}).get("policies", set()))
            yield {"AttachedPolicies": [{"PolicyArn": arn, "PolicyName": arn.rsplit("/", 1)[-1]}
                                        for arn in policies]}
        return _Paginator(pages)


class FakeEc2:
    def __init__(self):
        self.vpc_id = "vpc-default"
        self.subnet_ids = ["subnet-1", "subnet-2"]
        self.security_groups = {}
        self.public_ips = {"eni-0abc": "203.0.113.10"}

    def describe_vpcs(self, Filters):
        return {"Vpcs": [{"VpcId": self.vpc_id, "IsDefault": True}]}

    def describe_subnets(self, Filters):
        return {"Subnets": [{"SubnetId": s, "VpcId": self.vpc_id} for s in self.subnet_ids]}

    def add_security_group(self, name, vpc_id=None):
        group_id = f"sg-{len(self.security_groups) + 1:04d}"
        self.security_groups[group_id] = {"GroupId": group_id, "GroupName": name,
                                          "VpcId": vpc_id or self.vpc_id, "rules": set()}
        return group_id

    def describe_security_groups(self, Filters):
        groups = list(self.security_groups.values())
        for f in Filters:
            key = {"group-name": "GroupName", "vpc-id": "VpcId"}[f["Name"]]
            groups = [g for g in groups if g[key] in f["Values"]]
        return {"SecurityGroups": [{"GroupId": g["GroupId"], "GroupName": g["GroupName"]} for g in groups]}

    def create_security_group(self, GroupName, Description, VpcId):
        for g in self.security_groups.values():
            if g["GroupName"] == GroupName and g["VpcId"] == VpcId:
                raise client_error("InvalidGroup.Duplicate",
                                   f"The security group '{GroupName}' already exists for VPC '{VpcId}'",
                                   "CreateSecurityGroup")
        return {"GroupId": self.add_security_group(GroupName, VpcId)}

    def authorize_security_group_ingress(self, GroupId, IpPermissions):
        group = self.security_groups[GroupId]
        for perm in IpPermissions:
            for ip_range in perm["IpRanges"]:
                rule = (perm["IpProtocol"], perm["FromPort"], ip_range["CidrIp"])
                if rule in group["rules"]:
                    raise client_error("InvalidPermission.Duplicate", "the specified rule already exists",
                                       "AuthorizeSecurityGroupIngress")
                group["rules"].add(rule)

    def describe_network_interfaces(self, NetworkInterfaceIds):
        interfaces = []
        for eni in NetworkInterfaceIds:
            data = {"NetworkInterfaceId": eni}
            if self.public_ips.get(eni):
                data["Association"] = {"PublicIp": self.public_ips[eni]}
            interfaces.append(data)
        return {"NetworkInterfaces": interfaces}


class FakeElbv2:
    def __init__(self):
        self.target_groups = {}

    def describe_target_groups(self, Names):
        found = [self.target_groups[n] for n in Names if n in self.target_groups]
        if not found:
            raise client_error("TargetGroupNotFound", "One or more target groups not found",
                               "DescribeTargetGroups")
        return {"TargetGroups": found}

    def add_target_group(self, name):
        arn = f"arn:aws:elasticloadbalancing:{REGION}:{ACCOUNT_ID}:targetgroup/{name}/0123456789abcdef"
        self.target_groups[name] = {"TargetGroupName": name, "TargetGroupArn": arn}
        return arn


class FakeSts:
    def __init__(self, account_id=ACCOUNT_ID, error=None):
        self.account_id = account_id
        self.error = error

    def get_caller_identity(self):
        if self.error:
            raise self.error
        return {"Account": self.account_id, "Arn": f"arn:aws:iam::{self.account_id}:user/deployer"}


class FakeEcr:
    def __init__(self):
        self.images = {}

    def describe_images(self, repositoryName, imageIds):
        tag = imageIds[0]["imageTag"]
        if (repositoryName, tag) not in self.images:
            raise client_error("RepositoryNotFoundException", f"repository {repositoryName} not found",
                               "DescribeImages")
        return {"imageDetails": [{"imageTags": self.images[(repositoryName, tag)]}]}


def fake_clients() -> AwsClients:
    return AwsClients(
        ecs=FakeEcs(),
        logs=FakeLogs(),
        iam=FakeIam(),
        ec2=FakeEc2(),
        elbv2=FakeElbv2(),
        sts=FakeSts(),
        ecr=FakeEcr(),
    )
