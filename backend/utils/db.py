from sqlalchemy.exc import IntegrityError, DBAPIError

from core.errors import ConflictError, ServerError


async def safe_commit(session, conflict_message: str = "Resource already exists.", server_error_message: str = "Internal server error."):
    """Commit, rolling back on failure.

    Unique-constraint violations surface as ConflictError (409); any other
    store failure becomes a ServerError whose detail stays in the logs.
    """
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError(conflict_message) from e
    except DBAPIError as e:
        await session.rollback()
        raise ServerError(server_error_message) from e
