"""Bulk creation of users from a CSV upload."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.user_service.app.auth.password import hash_passwords
from services.user_service.app.imports.artifact import ImportOutcome, RowError, UploadArtifact
from services.user_service.app.imports.csv_parser import ParsedRow, parse_user_csv
from services.user_service.app.users.service import UsersService
from shared.utils.logging import get_logger

logger = get_logger(__name__)

HASH_BATCH_SIZE = 200


class UserCsvImporter:
    """Creates users from a CSV artifact in a single transaction.

    Used inline by the dispatcher for large files and by the import worker
    for queued jobs. Parsing and password hashing run in the default thread
    pool.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hash_batch_size: int = HASH_BATCH_SIZE,
    ):
        self.session_factory = session_factory
        self.hash_batch_size = hash_batch_size

    async def __call__(self, artifact: UploadArtifact) -> ImportOutcome:
        """Import the artifact.

        Raises:
            CsvFormatError: If the file cannot be read as a user CSV
        """
        loop = asyncio.get_running_loop()
        parsed = await loop.run_in_executor(None, parse_user_csv, artifact.content)
        errors: list[RowError] = list(parsed.errors)
        skipped = 0

        async with self.session_factory() as session:
            users = UsersService(session)
            existing = await users.existing_emails([row.user.email for row in parsed.rows])
            seen: set[str] = set()
            pending: list[ParsedRow] = []

            for row in parsed.rows:
                email = row.user.email
                if email in existing or email in seen:
                    skipped += 1
                    continue
                seen.add(email)
                pending.append(row)

            try:
                for start in range(0, len(pending), self.hash_batch_size):
                    batch = pending[start : start + self.hash_batch_size]
                    hashes = await hash_passwords([row.user.password for row in batch])
                    for row, hashed in zip(batch, hashes):
                        session.add(users.build_user(row.user, hashed))

                await session.commit()
            except Exception:
                await session.rollback()
                raise

        outcome = ImportOutcome(
            created=len(pending),
            skipped=skipped,
            failed=len(errors),
            errors=sorted(errors, key=lambda e: e.row_number),
        )
        logger.info(
            "csv_import_finished",
            filename=artifact.filename,
            created=outcome.created,
            skipped=outcome.skipped,
            failed=outcome.failed,
        )
        return outcome
