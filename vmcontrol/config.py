import logging
import os
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .exceptions import ArgumentError

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

PLATFORMS = ('proxmox', 'esxi')


def configure_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=LOG_FORMAT)


class RetryPolicy(BaseModel):
    """
    Bounded retry policy. Attempts are numbered from 1; the wait after attempt N is
    ``retry_delay * N`` seconds.
    """
    max_retries: int = 3
    retry_delay: float = 1.0

    def delay_for(self, attempt: int) -> float:
        return self.retry_delay * attempt


class ClientConfig(BaseModel):
    url: str
    username: str
    password: str
    realm: str = 'pam'
    verify_ssl: bool = False
    timeout: float = 30
    max_retries: int = 3
    retry_delay: float = 1.0
    batch_workers: int = 5
    max_batch_size: Optional[int] = None

    @field_validator('url')
    @classmethod
    def _strip_url(cls, value):
        value = value.strip().rstrip('/')
        if not value:
            raise ValueError('url must not be empty')
        return value

    @field_validator('timeout', 'max_retries', 'batch_workers')
    @classmethod
    def _positive(cls, value):
        if value <= 0:
            raise ValueError('must be > 0')
        return value

    @field_validator('retry_delay')
    @classmethod
    def _non_negative(cls, value):
        if value < 0:
            raise ValueError('must be >= 0')
        return value

    @field_validator('max_batch_size')
    @classmethod
    def _positive_cap(cls, value):
        if value is not None and value <= 0:
            raise ValueError('must be > 0')
        return value

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, retry_delay=self.retry_delay)


def build_config(**values) -> ClientConfig:
    try:
        return ClientConfig(**values)
    except ValidationError as e:
        raise ArgumentError(f"Invalid config: {e}") from e


def load_config(path, platform='proxmox') -> ClientConfig:
    """
    Load a client configuration from a YAML file.

    The file holds one section per platform::

        proxmox:
          url: https://pve.example.com:8006
          username: root
          password_file: secrets/pve-password.txt

    :param path: Path to the YAML file
    :param platform: 'proxmox' or 'esxi'
    :return: Validated ClientConfig
    """
    if platform not in PLATFORMS:
        raise ArgumentError(f"Unknown platform '{platform}': must be one of {', '.join(PLATFORMS)}")
    with open(path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}
    section = raw_config.get(platform)
    if not section:
        raise ArgumentError(f"Config file {path} has no '{platform}' section")
    section = dict(section)
    password_file = section.pop('password_file', None)
    if password_file and 'password' not in section:
        if not os.path.isabs(password_file):
            password_file = os.path.join(os.path.dirname(os.path.abspath(path)), password_file)
        with open(password_file, 'r') as f:
            section['password'] = f.read().strip()
    return build_config(**section)
