"""AWS Signature Version 4 signing strategy.

This module provides :class:`AwsSigV4Strategy`, which implements the
``awsv4`` strategy.

Credentials come from one of three places, in order:

1. ``profile_name`` -- resolved through the ``profiles`` capability, even
   when explicit keys are also given.
2. ``access_key_id`` / ``secret_access_key`` (+ ``session_token``).
3. The resolver's default profile, when no keys were given.

Profile lookups go through the process-wide
:class:`~reqauth.auth.credential_cache.CredentialCache`, so the shared INI
files are read once per profile.

Only a fixed set of request headers takes part in the signature:
``content-type``, ``host``, ``x-amz-date`` and ``x-amz-security-token``.
``X-Amz-Content-Sha256: UNSIGNED-PAYLOAD`` is added and signed for every
service except Lambda, which gets no such header; its canonical request
uses the hash of the empty body.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.capabilities import ProfileCredentialResolver
from reqauth.auth.credential_cache import CredentialCache, get_credential_cache
from reqauth.auth.params import ParameterKind, ParameterSchema, ParameterSpec, ResolvedValues
from reqauth.canonical import sigv4
from reqauth.canonical.encoding import select_headers
from reqauth.exceptions import InvalidConfigurationError, MissingCredentialError
from reqauth.models import AwsCredentials, NameValue, SigningResult

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "sts"
DEFAULT_REGION = "us-east-1"

_REQUEST_HEADERS = ("content-type", "host", "x-amz-date", "x-amz-security-token")
_DISPLAY_NAMES = {
    "host": "Host",
    "x-amz-date": "X-Amz-Date",
    "x-amz-security-token": "X-Amz-Security-Token",
    "x-amz-content-sha256": "X-Amz-Content-Sha256",
}
_DEFAULT_PORTS = {"http": 80, "https": 443}


def _host_header(url: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f"{host}:{parts.port}"
    return host


class AwsSigV4Strategy(SigningStrategy):
    """Sign requests with AWS Signature Version 4.

    Args:
        cache: Credential cache for profile lookups; defaults to the
            process-wide cache.
    """

    def __init__(self, cache: Optional[CredentialCache] = None) -> None:
        self._cache = cache

    @property
    def name(self) -> str:
        return "awsv4"

    @property
    def label(self) -> str:
        return "AWS Signature"

    @property
    def short_label(self) -> str:
        return "AWS v4"

    def parameters(self) -> ParameterSchema:
        return ParameterSchema(
            [
                ParameterSpec("access_key_id", label="Access Key ID", optional=True),
                ParameterSpec(
                    "secret_access_key",
                    ParameterKind.SECRET,
                    label="Secret Access Key",
                    optional=True,
                ),
                ParameterSpec(
                    "service",
                    label="Service Name",
                    default=DEFAULT_SERVICE,
                    optional=True,
                    placeholder="sts",
                    description="The service being called, e.g. s3, sts, execute-api",
                ),
                ParameterSpec(
                    "region",
                    label="Region",
                    optional=True,
                    placeholder=DEFAULT_REGION,
                ),
                ParameterSpec(
                    "session_token",
                    ParameterKind.SECRET,
                    label="Session Token",
                    optional=True,
                    description="Only required if you are using temporary credentials",
                ),
                ParameterSpec(
                    "profile_name",
                    label="AWS Profile",
                    optional=True,
                    advanced=True,
                    description="Named profile from ~/.aws/credentials; overrides the keys above",
                ),
            ]
        )

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def _from_profile(
        self, resolver: Optional[ProfileCredentialResolver], profile_name: Optional[str]
    ) -> AwsCredentials:
        if resolver is None:
            raise InvalidConfigurationError(
                "AWS profile credentials require a profile resolver capability"
            )
        cache = self._cache if self._cache is not None else get_credential_cache()
        return cache.get_or_create(
            ("aws-profile", resolver.cache_identity(profile_name)),
            lambda: resolver.resolve(profile_name),
        )

    def resolve_credentials(self, context: SigningContext, values: ResolvedValues) -> AwsCredentials:
        """Pick the credentials to sign with.

        Raises:
            MissingCredentialError: If no keys were given and no profile
                resolves.
        """
        resolver = context.capabilities.profiles
        profile_name = values.get("profile_name")
        if profile_name:
            logger.debug("Resolving AWS credentials from profile '%s'", profile_name)
            return self._from_profile(resolver, profile_name)

        access_key = values.get("access_key_id")
        secret_key = values.get("secret_access_key")
        if access_key and secret_key:
            return AwsCredentials(
                access_key_id=access_key,
                secret_access_key=secret_key,
                session_token=values.get("session_token") or None,
            )

        if resolver is None:
            raise MissingCredentialError(
                "AWS access key ID and secret access key are required"
            )
        logger.debug("No AWS keys given, falling back to the default profile")
        try:
            return self._from_profile(resolver, None)
        except MissingCredentialError as exc:
            raise MissingCredentialError(
                f"No AWS keys given and the default profile is unusable: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def apply(self, context: SigningContext, values: ResolvedValues) -> SigningResult:
        credentials = self.resolve_credentials(context, values)
        service = values.get("service") or DEFAULT_SERVICE
        region = values.get("region") or DEFAULT_REGION
        request = context.request

        signing = select_headers(((h.name, h.value) for h in request.headers), _REQUEST_HEADERS)
        if service == "lambda":
            payload_hash = sigv4.EMPTY_PAYLOAD_SHA256
        else:
            payload_hash = sigv4.UNSIGNED_PAYLOAD
            signing["x-amz-content-sha256"] = payload_hash
        if "host" not in signing:
            signing["host"] = _host_header(request.url)
        if "x-amz-date" not in signing:
            signing["x-amz-date"] = sigv4.amz_datetime(context.now())
        if credentials.session_token and "x-amz-security-token" not in signing:
            signing["x-amz-security-token"] = credentials.session_token

        signed = sigv4.sign_request(
            method=request.method,
            path=urlsplit(request.url).path,
            query=request.query_items(),
            headers=signing,
            payload_hash=payload_hash,
            access_key_id=credentials.access_key_id,
            secret_access_key=credentials.secret_access_key,
            region=region,
            service=service,
            amz_date=signing["x-amz-date"],
        )
        logger.debug("SigV4 canonical request:\n%s", signed.canonical_request)

        headers = [
            NameValue(name=_DISPLAY_NAMES.get(name, name), value=value)
            for name, value in signing.items()
            if name != "content-type"
        ]
        headers.append(NameValue(name="Authorization", value=signed.authorization))
        return SigningResult(set_headers=headers)
