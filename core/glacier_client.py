"""
Async facade over the boto3 Glacier client.

This module is the only place that talks to the storage service. Every
method runs the blocking boto3 call in a worker thread via
asyncio.to_thread, so awaiting a remote call suspends the calling task
instead of blocking the event loop.

THREAD SAFETY:
    - One GlacierClient is shared by all retrievals
    - boto3 clients are thread-safe; the facade keeps no per-call state

ERROR MAPPING:
    - Job still running, throttled, or connection blip -> JobNotReadyError
    - Anything else the service rejects               -> RemoteServiceError
    The facade does not try to tell permission, not-found and validation
    failures apart for callers; the service error code is kept in details.

Usage:
    client = GlacierClient(boto3.client("glacier"), logger=logger)

    job_id = await client.submit_job(vault_id, archive_id, "Bulk", description)

    try:
        output = await client.fetch_job_output(vault_id, job_id)
    except JobNotReadyError:
        ...  # wait and try again
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Union

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from models.retrieval import JobOutput
from models.vault import ArchiveReceipt, VaultSummary
from .exceptions import JobNotReadyError, RemoteServiceError


# Account id "-" means the account that owns the credentials
DEFAULT_ACCOUNT_ID = "-"

ARCHIVE_RETRIEVAL = "archive-retrieval"

# Error codes that mean "try again later" rather than "this job is gone"
TRANSIENT_ERROR_CODES = frozenset({
    "ThrottlingException",
    "RequestTimeoutException",
    "ServiceUnavailableException",
})

_TRANSIENT_CONNECTION_ERRORS = (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def _error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


class GlacierClient:
    """
    Retrieval Client Facade.

    Wraps a boto3 `glacier` client and exposes the handful of calls the
    retrieval core and the web surface need:
    - submit_job(): initiate an archive-retrieval job
    - fetch_job_output(): check a job and download its output when ready
    - list_vaults(): vault listing (pass-through)
    - upload_archive(): single-request upload (pass-through)
    """

    def __init__(
        self,
        boto_client,
        account_id: str = DEFAULT_ACCOUNT_ID,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the facade.

        Args:
            boto_client: boto3 Glacier client (from ClientManager)
            account_id: Glacier account id, "-" for the credentials' account
            logger: Logger instance (creates default if not provided)

        Raises:
            ValueError: If boto_client is None
        """
        if boto_client is None:
            raise ValueError("boto_client is required - ClientManager must be initialized")

        self._client = boto_client
        self._account_id = account_id
        self._logger = logger or logging.getLogger("vault_retrieval.core.glacier_client")

    @property
    def account_id(self) -> str:
        return self._account_id

    async def _call(self, operation: str, func: Callable[..., Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        """
        Run one boto3 call off the event loop and normalise its errors.

        Raises:
            RemoteServiceError: If the call fails for any reason
        """
        try:
            return await asyncio.to_thread(func, accountId=self._account_id, **kwargs)
        except ClientError as e:
            code = _error_code(e)
            self._logger.debug(f"{operation} rejected: {code}")
            raise RemoteServiceError(operation, _error_message(e), error_code=code) from e
        except BotoCoreError as e:
            self._logger.debug(f"{operation} failed: {e}")
            raise RemoteServiceError(operation, str(e), error_code=type(e).__name__) from e

    async def submit_job(
        self,
        vault_id: str,
        archive_id: str,
        tier_name: str,
        description: str
    ) -> str:
        """
        Initiate an archive-retrieval job.

        Args:
            vault_id: Vault containing the archive
            archive_id: Archive to retrieve
            tier_name: Tier protocol value ("Expedited", "Standard" or "Bulk")
            description: Free-text job description

        Returns:
            Job id assigned by the service

        Raises:
            RemoteServiceError: If the service rejects or cannot be reached
        """
        self._logger.debug(f"Initiating {tier_name} retrieval of {archive_id} in {vault_id}")

        response = await self._call(
            "initiate_job",
            self._client.initiate_job,
            vaultName=vault_id,
            jobParameters={
                "Type": ARCHIVE_RETRIEVAL,
                "ArchiveId": archive_id,
                "Description": description,
                "Tier": tier_name,
            },
        )

        job_id = response.get("jobId")
        if not job_id:
            raise RemoteServiceError(
                "initiate_job",
                "Service accepted the job but returned no job id",
                details={"vault_id": vault_id, "archive_id": archive_id}
            )

        self._logger.info(f"Retrieval job submitted: vault={vault_id} job={job_id}")
        return job_id

    async def fetch_job_output(self, vault_id: str, job_id: str) -> JobOutput:
        """
        Fetch the output of a retrieval job.

        Looks the job up first and only downloads once the service reports
        it as succeeded.

        Args:
            vault_id: Vault the job was created against
            job_id: Job id from submit_job()

        Returns:
            JobOutput with an unread body stream

        Raises:
            JobNotReadyError: If the job is still in progress (or the
                service asked us to back off)
            RemoteServiceError: If the job failed, is unknown, or access
                is denied
        """
        try:
            job = await self._call("describe_job", self._client.describe_job, vaultName=vault_id, jobId=job_id)
        except RemoteServiceError as e:
            self._raise_if_transient(e, vault_id, job_id)
            raise

        status_code = job.get("StatusCode", "InProgress")
        if status_code == "InProgress" or not job.get("Completed", False):
            raise JobNotReadyError(vault_id, job_id, status_code)

        if status_code != "Succeeded":
            raise RemoteServiceError(
                "describe_job",
                job.get("StatusMessage") or f"Job finished with status {status_code}",
                error_code=f"Job{status_code}",
                details={"vault_id": vault_id, "job_id": job_id}
            )

        try:
            response = await self._call("get_job_output", self._client.get_job_output, vaultName=vault_id, jobId=job_id)
        except RemoteServiceError as e:
            self._raise_if_transient(e, vault_id, job_id)
            raise

        output = JobOutput.from_api(response)
        self._logger.info(
            f"Job output ready: vault={vault_id} job={job_id} range={output.content_range}"
        )
        return output

    def _raise_if_transient(self, error: RemoteServiceError, vault_id: str, job_id: str) -> None:
        cause = error.__cause__
        if error.error_code in TRANSIENT_ERROR_CODES or isinstance(cause, _TRANSIENT_CONNECTION_ERRORS):
            self._logger.warning(f"Transient error polling job {job_id}: {error.message}")
            raise JobNotReadyError(vault_id, job_id, error.error_code or "Transient") from error

    async def list_vaults(self) -> List[VaultSummary]:
        """
        List every vault in the configured region.

        Follows the service's pagination markers.

        Raises:
            RemoteServiceError: If the listing fails
        """
        vaults: List[VaultSummary] = []
        marker: Optional[str] = None

        while True:
            kwargs = {"marker": marker} if marker else {}
            response = await self._call("list_vaults", self._client.list_vaults, **kwargs)
            vaults.extend(VaultSummary.from_api(v) for v in response.get("VaultList", []))
            marker = response.get("Marker")
            if not marker:
                break

        self._logger.debug(f"Listed {len(vaults)} vaults")
        return vaults

    async def upload_archive(
        self,
        vault_id: str,
        body: Union[bytes, BinaryIO],
        description: str = ""
    ) -> ArchiveReceipt:
        """
        Upload an archive in a single request.

        Args:
            vault_id: Target vault
            body: Archive bytes or a readable binary stream
            description: Archive description stored by the service

        Returns:
            ArchiveReceipt with the new archive id

        Raises:
            RemoteServiceError: If the upload is rejected
        """
        response = await self._call(
            "upload_archive",
            self._client.upload_archive,
            vaultName=vault_id,
            archiveDescription=description,
            body=body,
        )

        if not response.get("archiveId"):
            raise RemoteServiceError(
                "upload_archive",
                "Service accepted the upload but returned no archive id",
                details={"vault_id": vault_id}
            )

        receipt = ArchiveReceipt.from_api(response)
        self._logger.info(f"Archive uploaded: vault={vault_id} archive={receipt.archive_id}")
        return receipt
