# vehicle_webhook/utils/ssm.py
import os
from functools import lru_cache

import boto3

# Parameters live under an optional prefix, e.g. /vehicle-webhook/prod/
_PREFIX = os.getenv("SSM_PARAMETER_PREFIX", "")


@lru_cache(maxsize=1)
def _ssm_client():
    region = os.getenv("AWS_DEFAULT_REGION", os.getenv("AWS_REGION", "us-east-1"))
    return boto3.client("ssm", region_name=region)


def get_param(name: str, decrypt: bool = True) -> str:
    """Fetch ``<prefix><name>`` from AWS SSM Parameter Store (raises on AWS errors)."""
    resp = _ssm_client().get_parameter(Name=f"{_PREFIX}{name}", WithDecryption=decrypt)
    return resp["Parameter"]["Value"]
