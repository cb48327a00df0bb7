"""
AWS console link builders for verification summaries.
"""

import urllib.parse


class ConsoleLinkBuilder:
    """Builds AWS console URLs for the service and its logs."""

    def __init__(self, region: str):
        self.region = region

    def build_log_group_url(self, log_group: str) -> str:
        """Build CloudWatch log group console URL."""
        encoded_group = urllib.parse.quote(log_group, safe='')
        return f"https://console.aws.amazon.com/cloudwatch/home?region={self.region}#logsV2:log-groups/log-group/{encoded_group}"

    def build_ecs_service_url(self, cluster_name: str, service_name: str) -> str:
        return f"https://console.aws.amazon.com/ecs/v2/clusters/{cluster_name}/services/{service_name}/health?region={self.region}"

    def build_ecs_task_url(self, cluster_name: str, task_arn: str) -> str:
        task_id = task_arn.split('/')[-1]
        return f"https://console.aws.amazon.com/ecs/v2/clusters/{cluster_name}/tasks/{task_id}/configuration?region={self.region}"
