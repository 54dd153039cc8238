"""
Read-only EC2 instance metadata report.

Queries the instance metadata service (IMDSv2, falling back to IMDSv1 when
no token can be obtained). Each field is fetched independently so one
missing value doesn't hide the rest. Nothing here touches the ledger.
"""

import json
import logging
from typing import Any, Dict, Optional

import requests

from .errors import MetadataUnavailable

logger = logging.getLogger(__name__)

IMDS_ENDPOINT = "http://169.254.169.254"
TOKEN_TTL_SECONDS = 21600

IDENTITY_FIELDS = {
    "accountId": "Account ID",
    "architecture": "Architecture",
    "availabilityZone": "Availability Zone",
    "imageId": "Image ID",
    "kernelId": "Kernel ID",
    "pendingTime": "Pending Time",
}

IAM_FIELDS = {
    "InstanceProfileArn": "IAM Role ARN",
    "LastUpdated": "Last Updated",
}


class MetadataClient:
    """Minimal IMDS client over requests."""

    def __init__(self, endpoint: str = IMDS_ENDPOINT, timeout: float = 2.0,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_fetched = False

    def _get_token(self) -> Optional[str]:
        if self._token_fetched:
            return self._token
        self._token_fetched = True
        try:
            response = self.session.put(
                f"{self.endpoint}/latest/api/token",
                headers={"X-aws-ec2-metadata-token-ttl-seconds": str(TOKEN_TTL_SECONDS)},
                timeout=self.timeout,
            )
            response.raise_for_status()
            self._token = response.text
        except requests.RequestException as e:
            logger.debug(f"IMDSv2 token unavailable, falling back to IMDSv1: {e}")
            self._token = None
        return self._token

    def get(self, path: str) -> str:
        """
        Fetch a metadata path.

        Args:
            path: Path below /latest/, e.g. "meta-data/instance-id"

        Returns:
            Response body as text

        Raises:
            MetadataUnavailable: If the request fails
        """
        headers = {}
        token = self._get_token()
        if token:
            headers["X-aws-ec2-metadata-token"] = token

        try:
            response = self.session.get(
                f"{self.endpoint}/latest/{path}", headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise MetadataUnavailable(f"{path}: {e}")
        return response.text

    def get_json(self, path: str) -> Dict[str, Any]:
        body = self.get(path)
        try:
            return json.loads(body)
        except ValueError as e:
            raise MetadataUnavailable(f"{path}: invalid JSON: {e}")

    def instance_id(self) -> str:
        return self.get("meta-data/instance-id")

    def region(self) -> str:
        return self.get("meta-data/placement/region")

    def private_ip(self) -> str:
        return self.get("meta-data/local-ipv4")

    def instance_type(self) -> str:
        return self.get("meta-data/instance-type")

    def identity_document(self) -> Dict[str, Any]:
        return self.get_json("dynamic/instance-identity/document")

    def iam_info(self) -> Dict[str, Any]:
        return self.get_json("meta-data/iam/info")


def collect_report(client: MetadataClient) -> Dict[str, Any]:
    """
    Gather instance, identity document and IAM information.

    Returns:
        Dict with "instance", "identity" and "iam" sections plus a "warnings"
        list naming every field that could not be read
    """
    report: Dict[str, Any] = {"instance": {}, "identity": {}, "iam": {}, "warnings": []}

    basics = [
        ("Instance ID", client.instance_id),
        ("Region", client.region),
        ("Private IP", client.private_ip),
        ("Instance Type", client.instance_type),
    ]
    for label, fetch in basics:
        try:
            report["instance"][label] = fetch()
        except MetadataUnavailable as e:
            logger.warning(f"Unable to get {label}: {e}")
            report["warnings"].append(f"Unable to get {label}: {e}")

    try:
        document = client.identity_document()
        for key, label in IDENTITY_FIELDS.items():
            if document.get(key) is not None:
                report["identity"][label] = document[key]
    except MetadataUnavailable as e:
        logger.warning(f"Unable to get instance identity document: {e}")
        report["warnings"].append(f"Unable to get instance identity document: {e}")

    try:
        info = client.iam_info()
        for key, label in IAM_FIELDS.items():
            if info.get(key) is not None:
                report["iam"][label] = info[key]
    except MetadataUnavailable as e:
        logger.warning(f"Unable to get IAM information: {e}")
        report["warnings"].append(f"Unable to get IAM information: {e}")

    return report
